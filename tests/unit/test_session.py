"""Tests for session and protocol-version negotiation."""

from __future__ import annotations

import re

from influxdb_gateway.protocol import DEFAULT_PROTOCOL_VERSION
from influxdb_gateway.transport.session import (
    PROTOCOL_VERSION_HEADER,
    SESSION_ID_HEADER,
    SessionNegotiator,
    TransportSession,
    generate_session_id,
)


def test_generated_session_id_shape() -> None:
    session_id = generate_session_id()

    assert re.fullmatch(r"session_\d+_[0-9a-f]{9}", session_id)
    assert generate_session_id() != session_id


class TestSessionNegotiator:
    def test_defaults(self) -> None:
        negotiator = SessionNegotiator(id_factory=lambda: "session_fixed")

        session = negotiator.negotiate({})

        assert session == TransportSession("session_fixed", DEFAULT_PROTOCOL_VERSION)

    def test_headers_win_over_query(self) -> None:
        negotiator = SessionNegotiator()

        session = negotiator.negotiate(
            {SESSION_ID_HEADER: "from-header", PROTOCOL_VERSION_HEADER: "2025-03-26"},
            {"sessionId": "from-query", "protocolVersion": "2025-06-18"},
        )

        assert session.session_id == "from-header"
        assert session.protocol_version == "2025-03-26"

    def test_query_used_without_headers(self) -> None:
        negotiator = SessionNegotiator()

        session = negotiator.negotiate({}, {"sessionId": "q", "protocolVersion": "2025-06-18"})

        assert session.session_id == "q"
        assert session.protocol_version == "2025-06-18"

    def test_first_negotiation_is_held(self) -> None:
        negotiator = SessionNegotiator(id_factory=lambda: "first")

        first = negotiator.negotiate({})
        second = negotiator.negotiate({SESSION_ID_HEADER: "other"})

        assert second is first
        assert negotiator.current is first

    def test_reset(self) -> None:
        ids = iter(["a", "b"])
        negotiator = SessionNegotiator(id_factory=lambda: next(ids))

        negotiator.negotiate({})
        negotiator.reset()

        assert negotiator.current is None
        assert negotiator.negotiate({}).session_id == "b"


class TestTransportSession:
    def test_headers_and_dict(self) -> None:
        session = TransportSession("s-1", "2024-11-05")

        assert session.headers() == {
            "Mcp-Session-Id": "s-1",
            "MCP-Protocol-Version": "2024-11-05",
        }
        assert session.to_dict() == {"sessionId": "s-1", "protocolVersion": "2024-11-05"}
