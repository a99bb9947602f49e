"""Pytest configuration and shared fixtures."""

from typing import Any

import pytest

from influxdb_gateway.influx.client import DomainError
from influxdb_gateway.protocol import (
    CapabilityKind,
    CapabilityRegistry,
    Dispatcher,
    ServerInfo,
)

SERVER_INFO = ServerInfo(name="test-gateway", version="0.0.1")


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


def text(value: str) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": value}]}


def build_sample_registry() -> CapabilityRegistry:
    """A small registry exercising every capability kind and handler style."""
    registry = CapabilityRegistry()

    async def echo(args: dict[str, Any]) -> dict[str, Any]:
        return text(args["text"])

    async def query_data(args: dict[str, Any]) -> dict[str, Any]:
        return text(f"result for {args['query']}")

    async def boom(args: dict[str, Any]) -> dict[str, Any]:
        raise DomainError("upstream down")

    def orgs(args: dict[str, Any]) -> dict[str, Any]:
        return {"contents": [{"uri": args["uri"], "mimeType": "text/plain", "text": "acme"}]}

    async def measurements(args: dict[str, Any]) -> dict[str, Any]:
        return {
            "contents": [
                {"uri": args["uri"], "mimeType": "text/plain", "text": args["bucketName"]}
            ]
        }

    def greeting(args: dict[str, Any]) -> dict[str, Any]:
        return {
            "description": "Say hello",
            "messages": [
                {"role": "user", "content": {"type": "text", "text": f"Hello {args['name']}"}}
            ],
        }

    text_schema = {
        "type": "object",
        "properties": {"text": {"type": "string", "description": "Text to echo"}},
        "required": ["text"],
    }
    query_schema = {
        "type": "object",
        "properties": {"org": {"type": "string"}, "query": {"type": "string"}},
        "required": ["org", "query"],
    }

    registry.register(CapabilityKind.TOOL, "echo", echo, text_schema, description="Echo text")
    registry.register(
        CapabilityKind.TOOL, "query-data", query_data, query_schema, description="Query"
    )
    registry.register(CapabilityKind.TOOL, "boom", boom, description="Always fails")
    registry.register(
        CapabilityKind.RESOURCE,
        "influxdb://orgs",
        orgs,
        title="Organizations",
        description="List organizations",
        mime_type="text/plain",
    )
    registry.register(
        CapabilityKind.RESOURCE,
        "influxdb://bucket/{bucketName}/measurements",
        measurements,
        title="bucket-measurements",
        description="Measurements in a bucket",
        mime_type="text/plain",
        uri_template="influxdb://bucket/{bucketName}/measurements",
    )
    registry.register(
        CapabilityKind.PROMPT,
        "greeting",
        greeting,
        {
            "type": "object",
            "properties": {"name": {"type": "string", "description": "Who to greet"}},
            "required": ["name"],
        },
        description="Say hello",
    )
    return registry


@pytest.fixture
def sample_registry() -> CapabilityRegistry:
    registry = build_sample_registry()
    registry.freeze()
    return registry


@pytest.fixture
def dispatcher(sample_registry: CapabilityRegistry) -> Dispatcher:
    return Dispatcher(sample_registry, server_info=SERVER_INFO)
