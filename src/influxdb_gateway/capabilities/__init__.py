"""The gateway's fixed capability declarations.

Usage:
    registry = build_registry(client, default_org="acme")
    registry.freeze()
"""

from __future__ import annotations

import logging

from ..influx.client import InfluxClient
from ..protocol.registry import CapabilityRegistry
from .prompts import PROMPTS, register_prompts
from .resources import InfluxResources
from .tools import TOOL_DECLARATIONS, InfluxTools


def build_registry(
    client: InfluxClient,
    *,
    default_org: str | None = None,
    logger: logging.Logger | None = None,
) -> CapabilityRegistry:
    """Register every resource, tool and prompt against ``client``.

    The returned registry is not frozen; the caller freezes it once any
    extra capabilities have been added.
    """
    registry = CapabilityRegistry()
    InfluxResources(client, default_org=default_org, logger=logger).register(registry)
    InfluxTools(client, logger=logger).register(registry)
    register_prompts(registry)
    return registry


__all__ = [
    "PROMPTS",
    "TOOL_DECLARATIONS",
    "InfluxResources",
    "InfluxTools",
    "build_registry",
]
