"""Tests for the logging interceptor."""

from __future__ import annotations

import logging

import pytest

from influxdb_gateway.protocol import Dispatcher, LoggingDispatcher

LOGGER = "influxdb_gateway.test.messages"


@pytest.fixture
def logged(dispatcher: Dispatcher) -> LoggingDispatcher:
    return LoggingDispatcher(dispatcher, logger=logging.getLogger(LOGGER))


class ExplodingDispatcher:
    async def dispatch(self, envelope):
        raise RuntimeError("kaput")


class TestLoggingDispatcher:
    """One structured record per envelope."""

    @pytest.mark.anyio
    async def test_passes_reply_through(self, logged: LoggingDispatcher, dispatcher) -> None:
        envelope = {"protocol": "2.0", "id": 1, "method": "tools/list"}

        wrapped = await logged.dispatch(envelope)
        direct = await dispatcher.dispatch(envelope)

        assert wrapped.encode() == direct.encode()
        assert logged.inner is dispatcher

    @pytest.mark.anyio
    async def test_logs_successful_request(self, logged: LoggingDispatcher, caplog) -> None:
        with caplog.at_level(logging.INFO, logger=LOGGER):
            await logged.dispatch({"protocol": "2.0", "id": 7, "method": "ping"})

        record = next(r for r in caplog.records if r.name == LOGGER)
        assert record.rpc_method == "ping"
        assert record.rpc_id == 7
        assert record.rpc_kind == "request"
        assert record.rpc_outcome == "result"
        assert record.elapsed_ms >= 0
        assert "request ping (id=7) -> result" in record.getMessage()

    @pytest.mark.anyio
    async def test_logs_error_code(self, logged: LoggingDispatcher, caplog) -> None:
        with caplog.at_level(logging.INFO, logger=LOGGER):
            await logged.dispatch({"protocol": "2.0", "id": "x", "method": "nope"})

        record = next(r for r in caplog.records if r.name == LOGGER)
        assert record.rpc_outcome == "error -32601"

    @pytest.mark.anyio
    async def test_logs_notification(self, logged: LoggingDispatcher, caplog) -> None:
        with caplog.at_level(logging.INFO, logger=LOGGER):
            response = await logged.dispatch(
                {"protocol": "2.0", "method": "notifications/initialized"}
            )

        assert response is None
        record = next(r for r in caplog.records if r.name == LOGGER)
        assert record.rpc_kind == "notification"
        assert record.rpc_outcome == "none"

    @pytest.mark.anyio
    async def test_respects_level(self, dispatcher: Dispatcher, caplog) -> None:
        logged = LoggingDispatcher(dispatcher, logger=logging.getLogger(LOGGER), level=logging.DEBUG)

        with caplog.at_level(logging.INFO, logger=LOGGER):
            await logged.dispatch({"protocol": "2.0", "id": 1, "method": "ping"})

        assert not [r for r in caplog.records if r.name == LOGGER]

    @pytest.mark.anyio
    async def test_exceptions_are_logged_and_reraised(self, caplog) -> None:
        logged = LoggingDispatcher(ExplodingDispatcher(), logger=logging.getLogger(LOGGER))

        with caplog.at_level(logging.INFO, logger=LOGGER), pytest.raises(RuntimeError):
            await logged.dispatch({"protocol": "2.0", "id": 1, "method": "ping"})

        record = next(r for r in caplog.records if r.name == LOGGER)
        assert record.levelno == logging.ERROR
        assert record.rpc_outcome == "exception"
