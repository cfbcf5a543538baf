import pytest

from img_authz.domain.policy import AuthorizationPolicy


def test_empty_policy():
    policy = AuthorizationPolicy()

    assert policy.has_any_registries() is False
    assert policy.has_any_images() is False
    assert policy.is_registry_authorized("library") is False
    assert policy.is_image_authorized("ubuntu") is False


def test_membership_checks():
    policy = AuthorizationPolicy(["library", "myregistry"], ["ubuntu", "/app:latest"])

    assert policy.has_any_registries() is True
    assert policy.has_any_images() is True
    assert policy.is_registry_authorized("myregistry") is True
    assert policy.is_registry_authorized("evil.com") is False
    assert policy.is_image_authorized("/app:latest") is True
    assert policy.is_image_authorized("/app") is False


def test_blank_and_duplicate_entries_are_dropped():
    policy = AuthorizationPolicy(["library", " library ", "", "  "], None)

    assert policy.authorized_registries == frozenset({"library"})
    assert policy.has_any_images() is False


def test_string_rendering_is_sorted():
    policy = AuthorizationPolicy(["zeta", "alpha", "library"], ["b", "a"])

    assert policy.registries_as_string() == "alpha, library, zeta"
    assert policy.images_as_string() == "a, b"


def test_policy_is_immutable():
    policy = AuthorizationPolicy(["library"], ["ubuntu"])

    with pytest.raises(AttributeError):
        policy._registries = frozenset({"evil.com"})
    with pytest.raises(AttributeError):
        policy.extra = True
    with pytest.raises(AttributeError):
        del policy._images
    with pytest.raises(AttributeError):
        policy.authorized_registries.add("evil.com")

    assert policy.authorized_registries == frozenset({"library"})


def test_policy_copies_its_input():
    registries = ["library"]
    policy = AuthorizationPolicy(registries, ["ubuntu"])
    registries.append("evil.com")

    assert policy.is_registry_authorized("evil.com") is False
