"""Health check and server metadata endpoints."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..protocol.dispatcher import ServerInfo
from ..transport.http import GATEWAY_PATH, HttpTransport

SERVICE_NAME = "influxdb-gateway"


def health_routes(transport: HttpTransport, server_info: ServerInfo) -> list[Route]:
    """``/health`` and ``/``, guarded by the transport's origin policy."""

    async def health_check(request: Request) -> JSONResponse:
        """Health check endpoint."""
        return JSONResponse({"status": "healthy", "service": SERVICE_NAME})

    async def server_metadata(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "name": server_info.name,
                "version": server_info.version,
                "transport": "streamable-http",
                "endpoints": {"gateway": GATEWAY_PATH, "health": "/health"},
            }
        )

    return [
        Route("/health", transport.guard(health_check), methods=["GET"]),
        Route("/", transport.guard(server_metadata), methods=["GET"]),
    ]
