"""Gateway exception hierarchy.

Protocol errors map one-to-one onto JSON-RPC error codes and know how to
render themselves as an error object. Everything else (registry misuse,
pipe failures, startup configuration) stays outside the envelope.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .envelopes import ErrorObject


class ErrorCode:
    """Standard JSON-RPC 2.0 error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class GatewayError(Exception):
    """Base class for all gateway errors."""

    code: int = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, data: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.data = data


class ProtocolError(GatewayError):
    """An error that is expressible as a JSON-RPC error object."""

    def to_error(self) -> ErrorObject:
        from .envelopes import ErrorObject

        return ErrorObject(code=self.code, message=self.message, data=self.data)


class ParseError(ProtocolError):
    code = ErrorCode.PARSE_ERROR


class InvalidRequest(ProtocolError):
    """Malformed envelope.

    Carries the request id when one could be recovered so the reply can
    still be correlated. ``expects_reply`` is set when the envelope had an
    ``id`` member at all, even one of an unusable type; such requests are
    answered with a null id instead of being dropped as notifications.
    """

    code = ErrorCode.INVALID_REQUEST

    def __init__(
        self,
        message: str,
        data: Any | None = None,
        request_id: str | int | None = None,
        *,
        expects_reply: bool | None = None,
    ) -> None:
        super().__init__(message, data)
        self.request_id = request_id
        self.expects_reply = request_id is not None if expects_reply is None else expects_reply


class MethodNotFound(ProtocolError):
    code = ErrorCode.METHOD_NOT_FOUND


class InvalidParams(ProtocolError):
    code = ErrorCode.INVALID_PARAMS


class InternalError(ProtocolError):
    code = ErrorCode.INTERNAL_ERROR


class RegistryError(GatewayError):
    """Misuse of the capability registry."""


class DuplicateCapability(RegistryError):
    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} '{name}' already registered", {"kind": kind, "name": name})
        self.kind = kind
        self.name = name


class UnknownCapability(RegistryError):
    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"Unknown {kind}: {name}", {"kind": kind, "name": name})
        self.kind = kind
        self.name = name


class TransportError(GatewayError):
    """Pipe or network failure outside the JSON-RPC envelope."""


class ConfigError(GatewayError):
    """Mandatory startup configuration is missing or invalid."""
