"""InfluxDB Gateway Application.

Creates the Starlette ASGI application and the dispatcher behind it.

Route organization:
- /gateway - Protocol endpoint (POST envelopes, GET discovery or SSE)
- /health - Health check
- / - Server metadata
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.routing import Route

from . import __version__
from .capabilities import build_registry
from .config import GatewayConfig
from .influx.client import InfluxClient
from .protocol.dispatcher import Dispatcher, EnvelopeDispatcher, ServerInfo
from .protocol.middleware import LoggingDispatcher
from .protocol.registry import CapabilityKind, CapabilityRegistry
from .routes import gateway_routes, health_routes
from .transport.http import HttpTransport
from .transport.session import SessionNegotiator

logger = logging.getLogger(__name__)

SERVER_INFO = ServerInfo(name="influxdb-gateway", version=__version__)


def create_client(config: GatewayConfig) -> InfluxClient:
    return InfluxClient(config.influx_url, config.influx_token, timeout=config.influx_timeout)


def create_dispatcher(
    config: GatewayConfig,
    registry: CapabilityRegistry,
    *,
    log: logging.Logger | None = None,
) -> EnvelopeDispatcher:
    """Freeze ``registry`` and build the dispatcher both transports share.

    With ``config.log_messages`` the dispatcher is wrapped in a
    ``LoggingDispatcher``.
    """
    registry.freeze()
    dispatcher: EnvelopeDispatcher = Dispatcher(registry, server_info=SERVER_INFO, logger=log)
    if config.log_messages:
        dispatcher = LoggingDispatcher(dispatcher, logger=log)
    return dispatcher


def create_app(
    config: GatewayConfig | None = None,
    *,
    registry: CapabilityRegistry | None = None,
    client: InfluxClient | None = None,
    dispatcher: EnvelopeDispatcher | None = None,
) -> Starlette:
    """Create the gateway application.

    Args:
        config: Gateway settings (default: read from the environment)
        registry: Capabilities to serve (default: the InfluxDB capabilities)
        client: InfluxDB client for the default capabilities
        dispatcher: Use this dispatcher as-is instead of building one

    Returns:
        Configured Starlette application
    """
    config = config or GatewayConfig.from_env()

    owned_client: InfluxClient | None = None
    if dispatcher is None:
        if registry is None:
            if client is None:
                client = owned_client = create_client(config)
            registry = build_registry(client, default_org=config.influx_org)
        dispatcher = create_dispatcher(config, registry)

    kinds = (
        [f"{kind.value}s" for kind in CapabilityKind if registry.has_kind(kind)]
        if registry is not None
        else ["resources", "tools", "prompts"]
    )

    cors = config.cors_policy()
    transport = HttpTransport(
        dispatcher,
        server_info=SERVER_INFO,
        cors=cors,
        negotiator=SessionNegotiator(),
        heartbeat_interval=config.heartbeat_interval,
        capability_kinds=kinds,
    )

    routes: list[Route] = []
    routes.extend(gateway_routes(transport))
    routes.extend(health_routes(transport, SERVER_INFO))

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info(f"{SERVER_INFO.name} {SERVER_INFO.version} ready")
        try:
            yield
        finally:
            if owned_client is not None:
                await owned_client.close()

    # CORS headers for every route; the transport refuses disallowed origins
    middleware = [cors.middleware()]

    app = Starlette(routes=routes, middleware=middleware, lifespan=lifespan)
    app.state.transport = transport
    app.state.dispatcher = dispatcher
    return app
