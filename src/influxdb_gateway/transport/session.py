"""Session and protocol-version negotiation for the HTTP transport.

The negotiated values are established on first use and then held for the
lifetime of the negotiator. One negotiator belongs to one transport
instance, so the session identifies the transport, not a client
connection.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from ..protocol.envelopes import DEFAULT_PROTOCOL_VERSION

SESSION_ID_HEADER = "Mcp-Session-Id"
PROTOCOL_VERSION_HEADER = "MCP-Protocol-Version"

SESSION_ID_PARAM = "sessionId"
PROTOCOL_VERSION_PARAM = "protocolVersion"


def generate_session_id() -> str:
    """``session_<epoch millis>_<random suffix>``."""
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass(frozen=True)
class TransportSession:
    session_id: str
    protocol_version: str

    def headers(self) -> dict[str, str]:
        return {
            SESSION_ID_HEADER: self.session_id,
            PROTOCOL_VERSION_HEADER: self.protocol_version,
        }

    def to_dict(self) -> dict[str, str]:
        return {"sessionId": self.session_id, "protocolVersion": self.protocol_version}


class SessionNegotiator:
    """Derives the transport session from the first request that needs one.

    Lookup order for each value: request header, then query parameter, then
    the default (protocol version) or a freshly generated id (session).
    """

    def __init__(
        self,
        default_version: str = DEFAULT_PROTOCOL_VERSION,
        id_factory: Callable[[], str] = generate_session_id,
    ) -> None:
        self._default_version = default_version
        self._id_factory = id_factory
        self._session: TransportSession | None = None

    @property
    def current(self) -> TransportSession | None:
        return self._session

    def negotiate(
        self,
        headers: Mapping[str, str],
        query: Mapping[str, str] | None = None,
    ) -> TransportSession:
        if self._session is not None:
            return self._session

        query = query or {}
        version = (
            headers.get(PROTOCOL_VERSION_HEADER)
            or query.get(PROTOCOL_VERSION_PARAM)
            or self._default_version
        )
        session_id = (
            headers.get(SESSION_ID_HEADER) or query.get(SESSION_ID_PARAM) or self._id_factory()
        )
        self._session = TransportSession(session_id=session_id, protocol_version=version)
        return self._session

    def reset(self) -> None:
        self._session = None
