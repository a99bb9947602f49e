"""Transports: stdio pipes and HTTP with SSE."""

from .cors import CorsPolicy, CorsProfile
from .http import GATEWAY_PATH, HttpTransport
from .session import SessionNegotiator, TransportSession
from .sse import STREAMING_METHODS, connection_stream, format_event, should_stream
from .stdio import StdioTransport, run_stdio

__all__ = [
    "GATEWAY_PATH",
    "STREAMING_METHODS",
    "CorsPolicy",
    "CorsProfile",
    "HttpTransport",
    "SessionNegotiator",
    "StdioTransport",
    "TransportSession",
    "connection_stream",
    "format_event",
    "run_stdio",
    "should_stream",
]
