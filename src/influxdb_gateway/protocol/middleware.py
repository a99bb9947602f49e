"""Structured logging around a dispatcher.

``LoggingDispatcher`` wraps anything with ``async dispatch(envelope)`` and
records one log line per envelope. It is composed at startup by the app
factory or the CLI; the wrapped dispatcher is never modified.

Usage:
    dispatcher = LoggingDispatcher(Dispatcher(registry, server_info=info))
    await dispatcher.dispatch({"protocol": "2.0", "id": 1, "method": "ping"})
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from .dispatcher import EnvelopeDispatcher
from .envelopes import RequestEnvelope, ResponseEnvelope


class LoggingDispatcher:
    """Interceptor that logs method, id, outcome and latency of each envelope."""

    def __init__(
        self,
        inner: EnvelopeDispatcher,
        logger: logging.Logger | None = None,
        level: int = logging.INFO,
    ) -> None:
        self._inner = inner
        self._log = logger or logging.getLogger(__name__)
        self._level = level

    @property
    def inner(self) -> EnvelopeDispatcher:
        return self._inner

    async def dispatch(self, envelope: Any) -> ResponseEnvelope | None:
        method, request_id = _describe(envelope)
        kind = "notification" if request_id is None else "request"
        started = time.perf_counter()

        try:
            response = await self._inner.dispatch(envelope)
        except Exception:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self._log.exception(
                f"{kind} {method} (id={request_id}) raised after {elapsed_ms:.1f}ms",
                extra={
                    "rpc_method": method,
                    "rpc_id": request_id,
                    "rpc_kind": kind,
                    "rpc_outcome": "exception",
                    "elapsed_ms": elapsed_ms,
                },
            )
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        if response is None:
            outcome = "none"
        elif response.error is not None:
            outcome = f"error {response.error.code}"
        else:
            outcome = "result"

        self._log.log(
            self._level,
            f"{kind} {method} (id={request_id}) -> {outcome} in {elapsed_ms:.1f}ms",
            extra={
                "rpc_method": method,
                "rpc_id": request_id,
                "rpc_kind": kind,
                "rpc_outcome": outcome,
                "elapsed_ms": elapsed_ms,
            },
        )
        return response


def _describe(envelope: Any) -> tuple[str | None, Any]:
    if isinstance(envelope, RequestEnvelope):
        return envelope.method, envelope.id
    if isinstance(envelope, Mapping):
        return envelope.get("method"), envelope.get("id")
    return None, None
