"""Gateway endpoint route."""

from __future__ import annotations

from starlette.routing import Route

from ..transport.http import GATEWAY_PATH, HttpTransport

# Everything reaches the transport so unsupported methods get a JSON 405
GATEWAY_METHODS = ["GET", "POST", "OPTIONS", "DELETE", "PUT", "PATCH"]


def gateway_routes(transport: HttpTransport) -> list[Route]:
    return [Route(GATEWAY_PATH, transport.handle, methods=GATEWAY_METHODS)]
