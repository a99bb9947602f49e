"""Transport-agnostic protocol core: envelopes, registry and dispatch."""

from .dispatcher import Dispatcher, EnvelopeDispatcher, Method, ServerInfo
from .envelopes import (
    DEFAULT_PROTOCOL_VERSION,
    PROTOCOL_LITERAL,
    SUPPORTED_PROTOCOL_VERSIONS,
    ErrorObject,
    RequestEnvelope,
    ResponseEnvelope,
    decode_envelope,
    recover_id,
    recover_id_from_text,
)
from .errors import (
    ConfigError,
    DuplicateCapability,
    ErrorCode,
    GatewayError,
    InternalError,
    InvalidParams,
    InvalidRequest,
    MethodNotFound,
    ParseError,
    ProtocolError,
    RegistryError,
    TransportError,
    UnknownCapability,
)
from .middleware import LoggingDispatcher
from .registry import EMPTY_SCHEMA, Capability, CapabilityKind, CapabilityRegistry

__all__ = [
    # Envelopes
    "DEFAULT_PROTOCOL_VERSION",
    "PROTOCOL_LITERAL",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "ErrorObject",
    "RequestEnvelope",
    "ResponseEnvelope",
    "decode_envelope",
    "recover_id",
    "recover_id_from_text",
    # Errors
    "ConfigError",
    "DuplicateCapability",
    "ErrorCode",
    "GatewayError",
    "InternalError",
    "InvalidParams",
    "InvalidRequest",
    "MethodNotFound",
    "ParseError",
    "ProtocolError",
    "RegistryError",
    "TransportError",
    "UnknownCapability",
    # Registry
    "EMPTY_SCHEMA",
    "Capability",
    "CapabilityKind",
    "CapabilityRegistry",
    # Dispatch
    "Dispatcher",
    "EnvelopeDispatcher",
    "LoggingDispatcher",
    "Method",
    "ServerInfo",
]
