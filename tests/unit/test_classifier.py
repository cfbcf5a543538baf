import json

import pytest

from img_authz.domain.classifier import RequestClassifier, split_image_path
from img_authz.domain.models import DEFAULT_REGISTRY, ClassificationOutcome


@pytest.fixture
def classifier():
    return RequestClassifier()


def _body(**fields) -> bytes:
    return json.dumps(fields).encode("utf-8")


def test_create_container_with_registry(classifier):
    result = classifier.classify(
        "POST", "/v1.40/containers/create", _body(Image="myregistry/app:latest")
    )

    assert result.is_registry_operation is True
    assert result.outcome == ClassificationOutcome.REGISTRY_OPERATION
    assert result.registry == "myregistry"
    assert result.image == "/app:latest"


def test_create_container_with_name_query(classifier):
    result = classifier.classify(
        "POST", "/v1.40/containers/create?name=web", _body(Image="ubuntu")
    )

    assert result.is_registry_operation is True
    assert result.registry == DEFAULT_REGISTRY
    assert result.image == "ubuntu"


def test_create_container_image_key_is_case_insensitive(classifier):
    result = classifier.classify(
        "POST", "/v1.40/containers/create", b'{"image": "quay.io/coreos/etcd"}'
    )

    assert result.registry == "quay.io"
    assert result.image == "/coreos/etcd"


def test_pull_image_from_default_registry(classifier):
    result = classifier.classify(
        "POST", "/v1.40/images/create?fromImage=ubuntu&tag=latest", b""
    )

    assert result.is_registry_operation is True
    assert result.registry == "library"
    assert result.image == "ubuntu"


def test_pull_image_percent_encoded_reference(classifier):
    result = classifier.classify(
        "POST", "/v1.40/images/create?fromImage=quay.io%2Fcoreos%2Fetcd&tag=v3", b""
    )

    assert result.registry == "quay.io"
    assert result.image == "/coreos/etcd"
    assert result.url == "/v1.40/images/create?fromImage=quay.io/coreos/etcd&tag=v3"


def test_pull_image_absolute_uri(classifier):
    result = classifier.classify(
        "POST", "http://localhost/v1.40/images/create?fromImage=ubuntu", b""
    )

    assert result.is_registry_operation is True
    assert result.image == "ubuntu"


def test_unversioned_path_is_recognized(classifier):
    result = classifier.classify("POST", "/images/create?fromImage=alpine", b"")

    assert result.is_registry_operation is True
    assert result.image == "alpine"


@pytest.mark.parametrize(
    "uri",
    [
        "/v1.40/containers/list",
        "/v1.40/containers/json?all=1",
        "/v1.40/containers/abc123/start",
        "/v1.40/networks/create",
        "/_ping",
    ],
)
def test_other_paths_are_not_registry_operations(classifier, uri):
    result = classifier.classify("POST", uri, _body(Image="evil.com/bad"))

    assert result.is_registry_operation is False
    assert result.outcome == ClassificationOutcome.NOT_REGISTRY_OPERATION
    assert result.registry == ""
    assert result.image == ""


@pytest.mark.parametrize(
    "uri",
    [
        "/v1.40/images/create?fromImage=%zz",
        "/v1.40/images/create?fromImage=ubuntu%",
        "v1.40/images/create?fromImage=ubuntu",
        "",
        "/v1.40/images/create?fromImage=ubuntu%0A",
    ],
)
def test_unparsable_uri_degrades_to_not_registry(classifier, uri):
    result = classifier.classify("POST", uri, b"")

    assert result.is_registry_operation is False
    assert result.outcome == ClassificationOutcome.URI_UNPARSABLE


@pytest.mark.parametrize(
    "body",
    [b"", b"not json", b"[1, 2]", b'{"Image": 42}', b"\xff\xfe"],
)
def test_unparsable_body_degrades_to_not_registry(classifier, body):
    result = classifier.classify("POST", "/v1.40/containers/create", body)

    assert result.is_registry_operation is False
    assert result.outcome == ClassificationOutcome.BODY_UNPARSABLE


@pytest.mark.parametrize(
    "uri, body",
    [
        ("/v1.40/containers/create", b"null"),
        ("/v1.40/containers/create", b'{"Cmd": ["sh"]}'),
        ("/v1.40/containers/create", b'{"Image": ""}'),
        ("/v1.40/images/create?fromSrc=-", b""),
        ("/v1.40/images/create?fromImage=", b""),
    ],
)
def test_missing_image_is_not_registry_operation(classifier, uri, body):
    result = classifier.classify("POST", uri, body)

    assert result.is_registry_operation is False
    assert result.outcome == ClassificationOutcome.NO_IMAGE


def test_plus_is_unescaped_as_space(classifier):
    result = classifier.classify("POST", "/v1.40/images/create?fromImage=my+image", b"")

    assert result.image == "my image"


@pytest.mark.parametrize("reference", ["ubuntu", "ubuntu:22.04", "alpine@sha256:abc"])
def test_split_without_slash_uses_default_registry(reference):
    assert split_image_path(reference) == (DEFAULT_REGISTRY, reference)


def test_split_at_every_position_of_first_slash():
    """The registry is everything before the first slash, the image keeps the slash."""
    letters = "abcdefgh"
    for pos in range(len(letters) + 1):
        reference = letters[:pos] + "/" + letters[pos:] + "/tail"
        registry, image = split_image_path(reference)

        assert registry == letters[:pos]
        assert image == "/" + letters[pos:] + "/tail"
        assert registry + image == reference


def test_empty_create_body_is_unparsable(classifier):
    result = classifier.classify("POST", "/v1.40/containers/create", b"")

    assert result.outcome == ClassificationOutcome.BODY_UNPARSABLE


def test_pull_uses_first_from_image_even_when_blank(classifier):
    result = classifier.classify(
        "POST", "/v1.40/images/create?fromImage=&fromImage=evil.com/bad", b""
    )

    assert result.is_registry_operation is False
    assert result.outcome == ClassificationOutcome.NO_IMAGE


def test_mistyped_image_key_is_skipped_for_later_string_key(classifier):
    result = classifier.classify(
        "POST", "/v1.40/containers/create", b'{"Image": 5, "image": "evil.com/bad"}'
    )

    assert result.is_registry_operation is True
    assert result.registry == "evil.com"
    assert result.image == "/bad"


def test_later_mistyped_image_key_keeps_earlier_string(classifier):
    result = classifier.classify(
        "POST", "/v1.40/containers/create", b'{"Image": "ubuntu", "image": 5}'
    )

    assert result.registry == DEFAULT_REGISTRY
    assert result.image == "ubuntu"
