"""Wire envelopes for the gateway protocol.

Field names follow the wire format literally: ``protocol`` (always "2.0"),
``id``, ``method``, ``params`` on the way in; ``result`` XOR ``error`` on
the way out. Inbound envelopes may spell the protocol field ``jsonrpc``
for interoperability with stock JSON-RPC clients; outbound envelopes
always use ``protocol``.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
    model_serializer,
    model_validator,
)

from .errors import InvalidRequest, ProtocolError

PROTOCOL_LITERAL = "2.0"

# Protocol versions a client may negotiate during the handshake
DEFAULT_PROTOCOL_VERSION = "2024-11-05"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")

RequestId = StrictStr | StrictInt

_ID_PATTERN = re.compile(r'"id"\s*:\s*("(?:[^"\\]|\\.)*"|-?\d+)')


class RequestEnvelope(BaseModel):
    """A request, or a notification when ``id`` is absent."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    protocol: Literal["2.0"] = Field(validation_alias=AliasChoices("protocol", "jsonrpc"))
    id: RequestId | None = None
    method: StrictStr = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _params_default(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def is_notification(self) -> bool:
        return self.id is None


class ErrorObject(BaseModel):
    """JSON-RPC error object. ``data`` is omitted from the wire when unset."""

    code: int
    message: str
    data: Any | None = None

    @model_serializer(mode="wrap")
    def _drop_empty_data(self, handler: Any) -> dict[str, Any]:
        data = handler(self)
        if self.data is None:
            data.pop("data", None)
        return data


class ResponseEnvelope(BaseModel):
    """A reply to a request. Exactly one of ``result`` / ``error`` is present."""

    protocol: Literal["2.0"] = Field(
        default=PROTOCOL_LITERAL,
        validation_alias=AliasChoices("protocol", "jsonrpc"),
    )
    id: RequestId | None
    result: Any = None
    error: ErrorObject | None = None

    @model_validator(mode="after")
    def _result_xor_error(self) -> ResponseEnvelope:
        has_result = "result" in self.model_fields_set
        if self.error is not None and has_result:
            raise ValueError("response carries both 'result' and 'error'")
        if self.error is None and not has_result:
            raise ValueError("response carries neither 'result' nor 'error'")
        return self

    @model_serializer(mode="wrap")
    def _exclusive(self, handler: Any) -> dict[str, Any]:
        data = handler(self)
        if self.error is None:
            data.pop("error", None)
        else:
            data.pop("result", None)
        return data

    @classmethod
    def success(cls, request_id: str | int | None, result: Any) -> ResponseEnvelope:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(
        cls,
        request_id: str | int | None,
        error: ErrorObject | ProtocolError,
    ) -> ResponseEnvelope:
        if isinstance(error, ProtocolError):
            error = error.to_error()
        return cls(id=request_id, error=error)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def encode(self) -> str:
        """Serialize to a single line of JSON."""
        return self.model_dump_json()


def recover_id(data: Mapping[str, Any]) -> str | int | None:
    """Return the envelope id if it has a usable type, else None."""
    value = data.get("id")
    if isinstance(value, bool) or not isinstance(value, str | int):
        return None
    return value


def recover_id_from_text(text: str) -> str | int | None:
    """Best-effort id recovery from a line that failed to parse as JSON."""
    match = _ID_PATTERN.search(text)
    if match is None:
        return None
    try:
        value = json.loads(match.group(1))
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, str | int) else None


def decode_envelope(data: Any) -> RequestEnvelope:
    """Validate a decoded JSON value as a request envelope.

    Raises:
        InvalidRequest: The value is not a well-formed envelope. The
            exception carries the recovered request id, if any.
    """
    if isinstance(data, RequestEnvelope):
        return data
    if not isinstance(data, Mapping):
        raise InvalidRequest("Invalid Request: envelope must be a JSON object")

    try:
        return RequestEnvelope.model_validate(data)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(part) for part in err['loc']) or 'envelope'}: {err['msg']}"
            for err in e.errors()
        ]
        raise InvalidRequest(
            "Invalid Request",
            data={"errors": problems},
            request_id=recover_id(data),
            expects_reply=data.get("id") is not None,
        ) from e
