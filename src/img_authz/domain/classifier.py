import json
import logging
import re
from typing import Tuple
from urllib.parse import parse_qs, unquote_to_bytes, urlsplit

from .models import DEFAULT_REGISTRY, ClassificationOutcome, ClassifiedRequest

logger = logging.getLogger(__name__)

CREATE_CONTAINER_SUFFIX = "/containers/create"
PULL_IMAGE_SUFFIX = "/images/create"

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


class UnparsableRequest(ValueError):
    """A request URI or body that could not be decoded."""


def _unescape(value: str, plus_as_space: bool) -> str:
    """Strict percent-decoding: a dangling or non-hex escape is an error."""
    match = _BAD_ESCAPE.search(value)
    if match:
        raise UnparsableRequest(f"invalid escape at offset {match.start()}")
    if plus_as_space:
        value = value.replace("+", " ")
    return unquote_to_bytes(value).decode("utf-8", errors="replace")


def _parse_request_uri(uri: str) -> Tuple[str, str]:
    """Splits a request URI into (unescaped path, raw query)."""
    if not uri:
        raise UnparsableRequest("empty request URI")
    if _CONTROL_CHARS.search(uri):
        raise UnparsableRequest("control character in request URI")

    if uri.startswith("/"):
        raw_path, _, query = uri.partition("?")
    else:
        parts = urlsplit(uri)
        if not parts.scheme:
            raise UnparsableRequest(f"not an absolute URI: {uri!r}")
        raw_path, query = parts.path, parts.query

    return _unescape(raw_path, plus_as_space=False), query


def _image_from_body(body: bytes) -> str:
    """
    Reads the ``Image`` field of a container create body.

    Keys are matched case-insensitively and the last matching key wins,
    which is how the daemon itself decodes the same payload.
    """
    try:
        config = json.loads(body or b"")
    except ValueError as e:
        raise UnparsableRequest(f"container config is not valid JSON: {e}") from e

    if config is None:
        return ""
    if not isinstance(config, dict):
        raise UnparsableRequest("container config is not a JSON object")

    # A mistyped value is skipped, so a later string key still applies.
    image, mistyped = None, False
    for key, value in config.items():
        if key.lower() != "image" or value is None:
            continue
        if isinstance(value, str):
            image = value
        else:
            mistyped = True

    if image is None and mistyped:
        raise UnparsableRequest("container config Image is not a string")
    return image or ""


def split_image_path(image_path: str) -> Tuple[str, str]:
    """
    Splits an image reference into (registry, image).

    ``ubuntu`` -> (``library``, ``ubuntu``);
    ``myregistry/app:latest`` -> (``myregistry``, ``/app:latest``).
    """
    idx = image_path.find("/")
    if idx == -1:
        return DEFAULT_REGISTRY, image_path
    return image_path[:idx], image_path[idx:]


class RequestClassifier:
    """
    Turns a raw Docker Engine API request into a ClassifiedRequest.

    Classification never raises: anything that cannot be decoded is
    reported through a non-registry ClassificationOutcome, which the
    authorization service treats as out of scope (allowed).
    """

    def classify(
        self, method: str, request_uri: str, request_body: bytes = b""
    ) -> ClassifiedRequest:
        try:
            url = _unescape(request_uri or "", plus_as_space=True)
            path, query = _parse_request_uri(url)
        except UnparsableRequest as e:
            logger.debug(f"Unparsable request URI {method} {request_uri!r}: {e}")
            return ClassifiedRequest.not_registry(
                ClassificationOutcome.URI_UNPARSABLE, url=request_uri or ""
            )

        if path.endswith(CREATE_CONTAINER_SUFFIX):
            try:
                image_path = _image_from_body(request_body)
            except UnparsableRequest as e:
                logger.debug(f"Unparsable container config for {method} {url}: {e}")
                return ClassifiedRequest.not_registry(
                    ClassificationOutcome.BODY_UNPARSABLE, url=url
                )
        elif path.endswith(PULL_IMAGE_SUFFIX):
            # first value, even when blank
            params = parse_qs(query, keep_blank_values=True)
            image_path = params.get("fromImage", [""])[0]
        else:
            return ClassifiedRequest.not_registry(
                ClassificationOutcome.NOT_REGISTRY_OPERATION, url=url
            )

        if not image_path:
            return ClassifiedRequest.not_registry(ClassificationOutcome.NO_IMAGE, url=url)

        registry, image = split_image_path(image_path)
        return ClassifiedRequest(
            registry=registry,
            image=image,
            is_registry_operation=True,
            outcome=ClassificationOutcome.REGISTRY_OPERATION,
            url=url,
        )
