"""stdio transport.

Newline-delimited JSON over a pair of pipes. One envelope per input line,
at most one reply line per envelope.

Wire format (UTF-8):
- Input (stdin):  {"protocol": "2.0", "id": 1, "method": "ping"}
- Output (stdout): {"protocol":"2.0","id":1,"result":{}}

Cross-platform considerations:
- Newlines are always LF on output, never CRLF
- Input accepts both LF and CRLF
- A leading UTF-8 BOM is stripped
- Binary streams are used directly; text decoding happens per line

Diagnostics go to the injected logger, never to stdout.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from typing import BinaryIO

from ..protocol.dispatcher import EnvelopeDispatcher
from ..protocol.envelopes import ResponseEnvelope, recover_id_from_text
from ..protocol.errors import ParseError, TransportError

# UTF-8 encoding for all JSON operations
ENCODING = "utf-8"

# Newline character (always LF for cross-platform consistency)
NEWLINE = b"\n"

BOM = "\ufeff"


class StdioTransport:
    """Sequential stdio front door to a dispatcher.

    Each line is processed to completion, reply written and flushed, before
    the next line is read, so replies come out in input order.

    Usage:
        transport = StdioTransport(dispatcher)
        await transport.run()  # Blocks until stdin closes

    Example session:
        → {"protocol":"2.0","id":1,"method":"ping"}
        ← {"protocol":"2.0","id":1,"result":{}}
        → {"protocol":"2.0","method":"notifications/initialized"}
        (no output)
    """

    def __init__(
        self,
        dispatcher: EnvelopeDispatcher,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize stdio transport.

        Args:
            dispatcher: Receives every decoded envelope
            stdin: Binary input stream (default: sys.stdin.buffer)
            stdout: Binary output stream (default: sys.stdout.buffer)
            logger: Side channel for diagnostics
        """
        self._dispatcher = dispatcher
        self._stdin = stdin if stdin is not None else sys.stdin.buffer
        self._stdout = stdout if stdout is not None else sys.stdout.buffer
        self._log = logger or logging.getLogger(__name__)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """Process lines until the input stream closes.

        Raises:
            TransportError: The output stream is gone (broken pipe)
        """
        self._running = True
        self._log.info("stdio transport started")

        try:
            while self._running:
                raw = await self._read_line()
                if raw is None:
                    break  # EOF

                line = raw.decode(ENCODING, errors="replace").strip()
                if line.startswith(BOM):
                    line = line[1:].strip()
                if not line:
                    continue

                await self._process_line(line)
        except asyncio.CancelledError:
            self._log.info("stdio transport cancelled")
        finally:
            self._running = False
            self._log.info("stdio transport stopped")

    async def stop(self) -> None:
        """Stop after the line currently being processed."""
        self._running = False

    async def _read_line(self) -> bytes | None:
        """Read one raw line without blocking the event loop."""
        loop = asyncio.get_running_loop()
        try:
            line = await loop.run_in_executor(None, self._stdin.readline)
        except (OSError, ValueError) as e:
            self._log.warning(f"Input stream closed: {e}")
            return None
        return line if line else None

    async def _process_line(self, line: str) -> None:
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            request_id = recover_id_from_text(line)
            if request_id is None:
                self._log.warning(f"Dropping unparseable line: {e}")
                return
            self._write(ResponseEnvelope.failure(request_id, ParseError(f"Parse error: {e}")))
            return

        if not isinstance(data, dict):
            self._log.warning(f"Dropping non-object message: {type(data).__name__}")
            return

        response = await self._dispatcher.dispatch(data)
        if response is not None:
            self._write(response)

    def _write(self, response: ResponseEnvelope) -> None:
        """Write one reply line and flush immediately."""
        try:
            self._stdout.write(response.encode().encode(ENCODING) + NEWLINE)
            self._stdout.flush()
        except (BrokenPipeError, OSError, ValueError) as e:
            self._running = False
            raise TransportError(f"Failed to write to stdout: {e}") from e


async def run_stdio(
    dispatcher: EnvelopeDispatcher,
    logger: logging.Logger | None = None,
) -> None:
    """Run the stdio transport as the process entry point.

    An unrecoverable write failure ends the process with status 1.
    """
    log = logger or logging.getLogger(__name__)
    transport = StdioTransport(dispatcher, logger=log)
    try:
        await transport.run()
    except TransportError as e:
        log.error(f"Fatal stdio error: {e.message}")
        raise SystemExit(1) from e


def prepare_binary_stdio() -> None:
    """On Windows, ensure binary mode for stdin/stdout."""
    if sys.platform == "win32":
        import msvcrt

        msvcrt.setmode(sys.stdin.fileno(), os.O_BINARY)
        msvcrt.setmode(sys.stdout.fileno(), os.O_BINARY)
