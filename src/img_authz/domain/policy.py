from typing import FrozenSet, Iterable, Optional


def _normalize(entries: Optional[Iterable[str]]) -> FrozenSet[str]:
    return frozenset(e.strip() for e in (entries or ()) if e and e.strip())


class AuthorizationPolicy:
    """
    Whitelist of authorized registries and images.

    Built once at startup and shared by every request; there is no way to
    change it afterwards; restart the plugin to apply a new whitelist.
    """

    __slots__ = ("_registries", "_images")

    def __init__(
        self,
        authorized_registries: Optional[Iterable[str]] = None,
        authorized_images: Optional[Iterable[str]] = None,
    ):
        """
        Initializes the policy.

        Args:
            authorized_registries: Registry names (e.g. ``library``, ``myregistry``).
            authorized_images: Image paths as produced by classification
                (e.g. ``ubuntu``, ``/app:latest``).
        """
        object.__setattr__(self, "_registries", _normalize(authorized_registries))
        object.__setattr__(self, "_images", _normalize(authorized_images))

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __repr__(self) -> str:
        return (
            f"AuthorizationPolicy(registries=[{self.registries_as_string()}], "
            f"images=[{self.images_as_string()}])"
        )

    @property
    def authorized_registries(self) -> FrozenSet[str]:
        return self._registries

    @property
    def authorized_images(self) -> FrozenSet[str]:
        return self._images

    def has_any_registries(self) -> bool:
        return len(self._registries) > 0

    def has_any_images(self) -> bool:
        return len(self._images) > 0

    def is_registry_authorized(self, registry: str) -> bool:
        return registry in self._registries

    def is_image_authorized(self, image: str) -> bool:
        return image in self._images

    def registries_as_string(self) -> str:
        return ", ".join(sorted(self._registries))

    def images_as_string(self) -> str:
        return ", ".join(sorted(self._images))
