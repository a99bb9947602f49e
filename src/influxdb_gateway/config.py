"""Gateway configuration.

Read from the environment once at startup; CLI options override individual
fields via ``dataclasses.replace``.

Environment variables:
    INFLUXDB_URL                InfluxDB base URL (default http://localhost:8086)
    INFLUXDB_TOKEN              API token (required)
    INFLUXDB_ORG                Default organization for org-less resources
    INFLUXDB_TIMEOUT            Outbound request timeout in seconds (default 10)
    HOST / PORT                 HTTP bind address (default 127.0.0.1:3001)
    GATEWAY_CORS_PROFILE        relaxed | strict (default relaxed)
    GATEWAY_ALLOWED_ORIGINS     Comma-separated origin patterns for strict CORS
    GATEWAY_HEARTBEAT_INTERVAL  Seconds between SSE heartbeats (default 30)
    GATEWAY_LOG_LEVEL           Logging level (default WARNING)
    GATEWAY_LOG_MESSAGES        1/true to log every envelope
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .protocol.errors import ConfigError
from .transport.cors import DEFAULT_ALLOWED_ORIGINS, CorsPolicy, CorsProfile

DEFAULT_INFLUX_URL = "http://localhost:8086"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3001

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class GatewayConfig:
    influx_token: str
    influx_url: str = DEFAULT_INFLUX_URL
    influx_org: str | None = None
    influx_timeout: float = 10.0
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    cors_profile: CorsProfile = CorsProfile.RELAXED
    allowed_origins: tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    heartbeat_interval: float = 30.0
    log_level: str = "WARNING"
    log_messages: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> GatewayConfig:
        """Build a config from environment variables.

        Raises:
            ConfigError: INFLUXDB_TOKEN is missing, or a value does not parse
        """
        env = os.environ if environ is None else environ

        token = env.get("INFLUXDB_TOKEN", "").strip()
        if not token:
            raise ConfigError("INFLUXDB_TOKEN environment variable is required")

        origins = tuple(
            o.strip() for o in env.get("GATEWAY_ALLOWED_ORIGINS", "").split(",") if o.strip()
        )

        return cls(
            influx_token=token,
            influx_url=env.get("INFLUXDB_URL") or DEFAULT_INFLUX_URL,
            influx_org=env.get("INFLUXDB_ORG") or None,
            influx_timeout=_number(env, "INFLUXDB_TIMEOUT", 10.0, float),
            host=env.get("HOST") or DEFAULT_HOST,
            port=_number(env, "PORT", DEFAULT_PORT, int),
            cors_profile=_profile(env.get("GATEWAY_CORS_PROFILE")),
            allowed_origins=origins or DEFAULT_ALLOWED_ORIGINS,
            heartbeat_interval=_number(env, "GATEWAY_HEARTBEAT_INTERVAL", 30.0, float),
            log_level=(env.get("GATEWAY_LOG_LEVEL") or "WARNING").upper(),
            log_messages=env.get("GATEWAY_LOG_MESSAGES", "").strip().lower() in _TRUTHY,
        )

    def cors_policy(self) -> CorsPolicy:
        return CorsPolicy.create(self.cors_profile, self.allowed_origins)


def _number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {raw!r}")
    return value


def _profile(raw: str | None) -> CorsProfile:
    if not raw:
        return CorsProfile.RELAXED
    try:
        return CorsProfile(raw.strip().lower())
    except ValueError:
        choices = ", ".join(p.value for p in CorsProfile)
        raise ConfigError(f"GATEWAY_CORS_PROFILE must be one of {choices}, got {raw!r}") from None
