"""HTTP transport.

Serves the gateway endpoint:
- POST /gateway - one envelope per request, JSON or single-frame SSE reply
- GET /gateway - discovery metadata, or a long-lived event stream when the
  client sends ``Accept: text/event-stream``
- OPTIONS /gateway - CORS preflight

Transport-level failures (bad JSON, forbidden origin, unsupported method,
unexpected exceptions) are answered here without reaching the dispatcher.
Their body is ``{"error": {"code": <http status>, "message": ...}}``.
"""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import Awaitable, Callable, Collection
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse

from ..protocol.dispatcher import EnvelopeDispatcher, Method, ServerInfo
from ..protocol.envelopes import (
    DEFAULT_PROTOCOL_VERSION,
    PROTOCOL_LITERAL,
    SUPPORTED_PROTOCOL_VERSIONS,
    ResponseEnvelope,
    decode_envelope,
)
from ..protocol.errors import InvalidRequest, ParseError
from .cors import ALLOW_METHODS, CorsPolicy
from .session import SessionNegotiator
from .sse import (
    EVENT_STREAM,
    SSE_HEADERS,
    STREAMING_METHODS,
    accepts_event_stream,
    connection_stream,
    format_event,
    should_stream,
)

Endpoint = Callable[[Request], Awaitable[Response]]

GATEWAY_PATH = "/gateway"
ALLOWED_METHODS = "GET, POST, OPTIONS"
PREFLIGHT_HEADERS = {
    "Allow": ALLOWED_METHODS,
    "Access-Control-Allow-Methods": ", ".join(ALLOW_METHODS),
}


class HttpTransport:
    """Starlette endpoint feeding HTTP requests into a dispatcher.

    One instance serves one listener. The negotiated session is held by the
    instance and shared by every request it handles.
    """

    def __init__(
        self,
        dispatcher: EnvelopeDispatcher,
        *,
        server_info: ServerInfo,
        cors: CorsPolicy | None = None,
        negotiator: SessionNegotiator | None = None,
        heartbeat_interval: float = 30.0,
        streaming_methods: Collection[str] = STREAMING_METHODS,
        capability_kinds: Collection[str] = ("tools", "resources", "prompts"),
        logger: logging.Logger | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._server_info = server_info
        self._cors = cors or CorsPolicy()
        self._negotiator = negotiator or SessionNegotiator()
        self._heartbeat_interval = heartbeat_interval
        self._streaming_methods = frozenset(streaming_methods)
        self._capability_kinds = tuple(capability_kinds)
        self._log = logger or logging.getLogger(__name__)

    @property
    def cors(self) -> CorsPolicy:
        return self._cors

    @property
    def negotiator(self) -> SessionNegotiator:
        return self._negotiator

    # =========================================================================
    # Entry points
    # =========================================================================

    async def handle(self, request: Request) -> Response:
        """Handle any request to the gateway endpoint."""
        origin = request.headers.get("origin")

        if request.method == "OPTIONS":
            # Preflights carrying Access-Control-Request-Method are answered by the
            # CORS middleware; this covers the rest
            return Response(status_code=200, headers=PREFLIGHT_HEADERS)

        if not self._cors.is_allowed(origin):
            self._log.warning(f"Rejected request from disallowed origin {origin}")
            return self.error_response(403, "Forbidden origin")

        try:
            if request.method == "POST":
                return await self._handle_post(request)
            if request.method == "GET":
                return await self._handle_get(request)
            return self.error_response(405, "Method not allowed", headers={"Allow": ALLOWED_METHODS})
        except Exception as e:
            self._log.exception(f"Error handling {request.method} {request.url.path}: {e}")
            return self.error_response(500, "Internal server error")

    def guard(self, endpoint: Endpoint) -> Endpoint:
        """Apply the origin check and 500 normalization to ``endpoint``."""

        @functools.wraps(endpoint)
        async def guarded(request: Request) -> Response:
            origin = request.headers.get("origin")
            if not self._cors.is_allowed(origin):
                self._log.warning(f"Rejected request from disallowed origin {origin}")
                return self.error_response(403, "Forbidden origin")
            try:
                response = await endpoint(request)
            except Exception as e:
                self._log.exception(f"Error handling {request.method} {request.url.path}: {e}")
                return self.error_response(500, "Internal server error")
            return response

        return guarded

    def metadata(self) -> dict[str, Any]:
        """Static discovery document served on ``GET /gateway``."""
        return {
            "name": self._server_info.name,
            "version": self._server_info.version,
            "transport": "streamable-http",
            "protocol": PROTOCOL_LITERAL,
            "protocolVersion": self._negotiator.current.protocol_version
            if self._negotiator.current
            else DEFAULT_PROTOCOL_VERSION,
            "supportedVersions": list(SUPPORTED_PROTOCOL_VERSIONS),
            "capabilities": {kind: {} for kind in self._capability_kinds},
        }

    def error_response(
        self,
        status_code: int,
        message: str,
        *,
        headers: dict[str, str] | None = None,
        details: Any = None,
    ) -> JSONResponse:
        """Transport-level error: ``{"error": {"code": status, "message": ...}}``."""
        error: dict[str, Any] = {"code": status_code, "message": message}
        if details is not None:
            error["details"] = details
        return JSONResponse({"error": error}, status_code=status_code, headers=headers)

    # =========================================================================
    # GET
    # =========================================================================

    async def _handle_get(self, request: Request) -> Response:
        session = self._negotiator.negotiate(request.headers, request.query_params)
        headers = session.headers()

        if not accepts_event_stream(request.headers.get("accept")):
            return JSONResponse(self.metadata(), headers=headers)

        self._log.info(f"Opening event stream for session {session.session_id}")
        return StreamingResponse(
            connection_stream(request, session, self._heartbeat_interval, log=self._log),
            media_type=EVENT_STREAM,
            headers={**SSE_HEADERS, **headers},
        )

    # =========================================================================
    # POST
    # =========================================================================

    async def _handle_post(self, request: Request) -> Response:
        session = self._negotiator.negotiate(request.headers, request.query_params)
        headers = session.headers()

        body = await request.body()
        try:
            data = json.loads(body.decode("utf-8"))
            # Some clients double-encode the envelope as a JSON string
            if isinstance(data, str):
                data = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._log.warning(f"Unparseable request body: {e}")
            reply = ResponseEnvelope.failure(None, ParseError(f"Parse error: {e}"))
            return Response(
                reply.encode(), status_code=400, media_type="application/json", headers=headers
            )

        if not isinstance(data, dict):
            return self.error_response(
                400, "Request body must be a JSON object", headers=session.headers()
            )

        if "method" not in data:
            if "result" in data or "error" in data:
                # A reply from the client; nothing is waiting on it here
                return Response(status_code=202, headers=headers)
            return self.error_response(
                400, "Invalid message: missing 'method'", headers=session.headers()
            )

        try:
            envelope: Any = decode_envelope(data)
        except InvalidRequest as e:
            if not e.expects_reply:
                return self.error_response(
                    400, e.message, headers=session.headers(), details=e.data
                )
            envelope = data  # The dispatcher answers -32600, with a null id if unusable

        reply = await self._dispatcher.dispatch(envelope)
        if reply is None:
            return Response(status_code=202, headers=headers)

        method_name = _stream_key(data)
        if should_stream(request.headers.get("accept"), method_name, self._streaming_methods):
            self._log.debug(f"Streaming reply to {method_name} (id={reply.id})")
            return Response(
                format_event(reply.encode(), event_id=reply.id),
                media_type=EVENT_STREAM,
                headers={**SSE_HEADERS, **headers},
            )

        return Response(reply.encode(), media_type="application/json", headers=headers)


def _stream_key(data: dict[str, Any]) -> str:
    """Name used for the streaming decision: the tool name for tools/call."""
    method = data.get("method")
    if method == Method.TOOLS_CALL:
        params = data.get("params")
        if isinstance(params, dict) and isinstance(params.get("name"), str):
            return params["name"]
    return method if isinstance(method, str) else ""
