import base64
import binascii
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

# Registry assumed when an image reference carries no prefix (Docker Hub).
DEFAULT_REGISTRY = "library"


class ClassificationOutcome(Enum):
    REGISTRY_OPERATION = "registry_operation"
    NOT_REGISTRY_OPERATION = "not_registry_operation"
    URI_UNPARSABLE = "uri_unparsable"
    BODY_UNPARSABLE = "body_unparsable"
    NO_IMAGE = "no_image"


class DecisionRule(Enum):
    NOT_REGISTRY_OPERATION = "not_registry_operation"
    NO_REGISTRIES = "no_registries"
    NO_IMAGES = "no_images"
    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"
    RESPONSE_PHASE = "response_phase"


@dataclass(frozen=True)
class ClassifiedRequest:
    registry: str
    image: str
    is_registry_operation: bool
    outcome: ClassificationOutcome
    url: str = ""

    @classmethod
    def not_registry(
        cls, outcome: ClassificationOutcome, url: str = ""
    ) -> "ClassifiedRequest":
        return cls(
            registry="",
            image="",
            is_registry_operation=False,
            outcome=outcome,
            url=url,
        )


@dataclass(frozen=True)
class Decision:
    allow: bool
    message: str = ""
    rule: Optional[DecisionRule] = None

    def to_response(self) -> Dict[str, Any]:
        """Wire shape expected by the Docker daemon."""
        return {"Allow": self.allow, "Msg": self.message, "Err": ""}


class EnvelopeError(ValueError):
    """Raised when a plugin request envelope cannot be decoded."""


def _decode_bytes(value: Any, name: str) -> bytes:
    # Go marshals []byte as base64 strings, null when empty.
    if value is None or value == "":
        return b""
    if not isinstance(value, str):
        raise EnvelopeError(f"{name} must be a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EnvelopeError(f"{name} is not valid base64: {e}") from e


def _decode_headers(value: Any, name: str) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise EnvelopeError(f"{name} must be a JSON object")
    return {str(k): str(v) for k, v in value.items()}


@dataclass
class AuthZRequest:
    """
    An authorization request as sent by the Docker daemon to the plugin.

    Both the request phase (AuthZReq) and the response phase (AuthZRes)
    use the same envelope; response fields are empty in the request phase.
    """

    request_method: str = ""
    request_uri: str = ""
    request_body: bytes = b""
    user: str = ""
    user_authn_method: str = ""
    request_headers: Dict[str, str] = field(default_factory=dict)
    response_status_code: int = 0
    response_body: bytes = b""
    response_headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthZRequest":
        if not isinstance(data, dict):
            raise EnvelopeError("request envelope must be a JSON object")
        try:
            status_code = int(data.get("ResponseStatusCode") or 0)
        except (TypeError, ValueError) as e:
            raise EnvelopeError(f"ResponseStatusCode is not an integer: {e}") from e

        return cls(
            request_method=str(data.get("RequestMethod") or ""),
            request_uri=str(data.get("RequestURI") or ""),
            request_body=_decode_bytes(data.get("RequestBody"), "RequestBody"),
            user=str(data.get("User") or ""),
            user_authn_method=str(data.get("UserAuthNMethod") or ""),
            request_headers=_decode_headers(
                data.get("RequestHeaders"), "RequestHeaders"
            ),
            response_status_code=status_code,
            response_body=_decode_bytes(data.get("ResponseBody"), "ResponseBody"),
            response_headers=_decode_headers(
                data.get("ResponseHeaders"), "ResponseHeaders"
            ),
        )

    @classmethod
    def from_json(cls, raw: bytes) -> "AuthZRequest":
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
        except (UnicodeDecodeError, ValueError) as e:
            raise EnvelopeError(f"request envelope is not valid JSON: {e}") from e
        return cls.from_dict(data)
