"""InfluxDB Gateway CLI.

Default mode is stdio (for subprocess integration).
Use --http to run as HTTP server.

Usage:
    influxdb-gateway                          # Stdio mode (default)
    influxdb-gateway --http                   # HTTP server mode
    influxdb-gateway --http --port 8080       # HTTP with custom port
    influxdb-gateway --http --cors strict \\
        --allow-origin 'https://app.example.com'
    influxdb-gateway --health                 # Check HTTP server health

    influxdb-gateway capabilities             # List registered capabilities
    influxdb-gateway capabilities --format json
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import os
import sys

import click
import httpx

from .config import DEFAULT_HOST, DEFAULT_INFLUX_URL, DEFAULT_PORT, GatewayConfig
from .protocol.errors import ConfigError
from .protocol.registry import CapabilityKind
from .transport.cors import CorsProfile

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def truncate(text: str | None, max_len: int = 50) -> str:
    """Truncate text for display."""
    if not text:
        return ""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


@click.group(invoke_without_command=True)
@click.option("--http", "http_mode", is_flag=True, help="Run as HTTP server instead of stdio")
@click.option("--host", default=None, help=f"Host to bind to (HTTP mode, default {DEFAULT_HOST})")
@click.option(
    "--port", type=int, default=None, help=f"Port to bind to (HTTP mode, default {DEFAULT_PORT})"
)
@click.option(
    "--cors",
    "cors_profile",
    type=click.Choice(["relaxed", "strict"]),
    default=None,
    help="CORS profile (HTTP mode)",
)
@click.option(
    "--allow-origin",
    "allow_origins",
    multiple=True,
    help="Allowed origin pattern for strict CORS, repeatable (HTTP mode)",
)
@click.option(
    "--heartbeat-interval",
    type=float,
    default=None,
    help="Seconds between SSE heartbeats (HTTP mode)",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging level (logs go to stderr)",
)
@click.option("--log-messages", is_flag=True, help="Log every envelope with its outcome and latency")
@click.option("--health", "health_check", is_flag=True, help="Check HTTP server health and exit")
@click.option(
    "--health-url",
    default=f"http://{DEFAULT_HOST}:{DEFAULT_PORT}",
    help="Server URL for health check",
)
@click.pass_context
def main(
    ctx: click.Context,
    http_mode: bool,
    host: str | None,
    port: int | None,
    cors_profile: str | None,
    allow_origins: tuple[str, ...],
    heartbeat_interval: float | None,
    log_level: str | None,
    log_messages: bool,
    health_check: bool,
    health_url: str,
) -> None:
    """InfluxDB Gateway - expose InfluxDB to remote agents.

    By default, runs in stdio mode for subprocess/IPC communication.
    Use --http to run as an HTTP server.
    """
    # If a subcommand is invoked, let it handle everything
    if ctx.invoked_subcommand is not None:
        return

    http_only = {
        "--host": host,
        "--port": port,
        "--cors": cors_profile,
        "--allow-origin": allow_origins or None,
        "--heartbeat-interval": heartbeat_interval,
    }
    given = [flag for flag, value in http_only.items() if value is not None]
    if given and not http_mode:
        raise click.UsageError(
            f"{', '.join(given)} require --http mode. "
            "These options are only available when running as an HTTP server."
        )

    # Handle --health flag
    if health_check:
        _do_health_check(health_url)
        return

    try:
        config = GatewayConfig.from_env()
    except ConfigError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    overrides = {
        "host": host,
        "port": port,
        "cors_profile": CorsProfile(cors_profile) if cors_profile else None,
        "allowed_origins": allow_origins or None,
        "heartbeat_interval": heartbeat_interval,
        "log_level": log_level.upper() if log_level else None,
        "log_messages": log_messages or None,
    }
    config = dataclasses.replace(config, **{k: v for k, v in overrides.items() if v is not None})

    _configure_logging(config.log_level)

    if http_mode:
        _run_http_server(config)
    else:
        _run_stdio_server(config)


def _configure_logging(level: str) -> None:
    """Send logs to stderr; stdout belongs to the protocol in stdio mode."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _do_health_check(url: str) -> None:
    """Check server health."""

    async def check() -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{url.rstrip('/')}/health")
                if response.status_code == 200:
                    data = response.json()
                    click.echo(f"Server is healthy: {data}")
                else:
                    click.echo(f"Server returned {response.status_code}", err=True)
                    sys.exit(1)
        except httpx.RequestError:
            click.echo(f"Cannot connect to server at {url}", err=True)
            sys.exit(1)

    asyncio.run(check())


def _run_http_server(config: GatewayConfig) -> None:
    """Run HTTP server mode."""
    import uvicorn

    from .app import create_app

    click.echo(f"Starting InfluxDB gateway on http://{config.host}:{config.port}", err=True)
    click.echo(f"  Gateway endpoint: http://{config.host}:{config.port}/gateway", err=True)
    click.echo(f"  CORS profile: {config.cors_profile.value}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


def _run_stdio_server(config: GatewayConfig) -> None:
    """Run stdio server mode (default)."""
    from .app import create_client, create_dispatcher
    from .capabilities import build_registry
    from .transport.stdio import prepare_binary_stdio, run_stdio

    click.echo("Starting InfluxDB gateway in stdio mode", err=True)
    prepare_binary_stdio()

    async def serve() -> None:
        async with create_client(config) as client:
            registry = build_registry(client, default_org=config.influx_org)
            await run_stdio(create_dispatcher(config, registry))

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)


# =============================================================================
# Capabilities Command
# =============================================================================


@main.command("capabilities")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
def capabilities(output_format: str) -> None:
    """List the resources, tools and prompts the gateway serves.

    Does not contact InfluxDB.

    Examples:

        influxdb-gateway capabilities
        influxdb-gateway capabilities --format json
    """
    from .capabilities import build_registry
    from .influx.client import InfluxClient

    url = os.environ.get("INFLUXDB_URL") or DEFAULT_INFLUX_URL
    registry = build_registry(InfluxClient(url, token=""), default_org=os.environ.get("INFLUXDB_ORG"))

    if output_format == FORMAT_JSON:
        listing = {
            f"{kind.value}s": [cap.describe() for cap in registry.list(kind)]
            for kind in CapabilityKind
        }
        click.echo(json.dumps(listing, indent=2, ensure_ascii=False))
        return

    # Table format
    click.echo(f"{'Kind':<10} {'Name':<45} {'Description':<50}")
    click.echo("-" * 107)
    for cap in registry:
        click.echo(f"{cap.kind.value:<10} {cap.name:<45} {truncate(cap.description, 50):<50}")

    click.echo(f"\nTotal: {len(registry)} capability(ies)")


if __name__ == "__main__":
    main()
