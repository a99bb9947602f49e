"""Server-Sent Events helpers.

Frame formatting, the streamed-vs-buffered decision for POST replies, and
the long-lived connection stream served on ``GET /gateway``.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator, Collection
from datetime import UTC, datetime
from typing import Any, Protocol

from .session import TransportSession

logger = logging.getLogger(__name__)

EVENT_STREAM = "text/event-stream"

# Tools that may run long enough to warrant a streamed reply
STREAMING_METHODS: frozenset[str] = frozenset({"query-data", "write-data"})

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


class DisconnectAware(Protocol):
    async def is_disconnected(self) -> bool: ...


def accepts_event_stream(accept: str | None) -> bool:
    return bool(accept) and EVENT_STREAM in accept.lower()


def should_stream(
    accept: str | None,
    method_name: str,
    streaming_methods: Collection[str] = STREAMING_METHODS,
) -> bool:
    """True when the reply to ``method_name`` should be sent as an SSE frame.

    Pure function of its inputs; evaluated per request.
    """
    return accepts_event_stream(accept) and method_name in streaming_methods


def format_event(data: str, *, event_id: Any = None, event: str | None = None) -> str:
    """One SSE frame. Multi-line data is split across ``data:`` lines."""
    lines = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    if event:
        lines.append(f"event: {event}")
    lines.extend(f"data: {line}" for line in data.split("\n"))
    return "\n".join(lines) + "\n\n"


def format_comment(text: str) -> str:
    return f": {text}\n\n"


def heartbeat_comment(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return format_comment(f"heartbeat {now.isoformat()}")


async def connection_stream(
    request: DisconnectAware,
    session: TransportSession,
    heartbeat_interval: float = 30.0,
    *,
    log: logging.Logger | None = None,
) -> AsyncIterator[str]:
    """Frames for a long-lived event stream.

    Sends one ``connection`` event, then a heartbeat comment every
    ``heartbeat_interval`` seconds until the client goes away. The
    disconnect check runs at least once a second.

    Args:
        request: The incoming request (for disconnect detection)
        session: Negotiated session announced in the connection event
        heartbeat_interval: Seconds between heartbeat comments
    """
    log = log or logger
    yield format_event(json.dumps({"type": "connection", **session.to_dict()}))

    frame_queue: asyncio.Queue[str] = asyncio.Queue()

    async def heartbeat() -> None:
        """Queue periodic heartbeats to keep the connection alive."""
        while True:
            await asyncio.sleep(heartbeat_interval)
            await frame_queue.put(heartbeat_comment())

    heartbeat_task = asyncio.create_task(heartbeat())
    poll_interval = min(1.0, heartbeat_interval)
    log.debug(f"Event stream opened for {session.session_id}")

    try:
        while True:
            if await request.is_disconnected():
                break

            try:
                frame = await asyncio.wait_for(frame_queue.get(), timeout=poll_interval)
            except TimeoutError:
                continue  # Check disconnect and try again

            yield frame

    finally:
        heartbeat_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await heartbeat_task
        log.debug(f"Event stream closed for {session.session_id}")
