"""Tests for the capability registry."""

from __future__ import annotations

import pytest

from influxdb_gateway.protocol import (
    EMPTY_SCHEMA,
    CapabilityKind,
    CapabilityRegistry,
    DuplicateCapability,
    RegistryError,
    UnknownCapability,
)


def noop(args):
    return {}


class TestRegistration:
    """register() contract."""

    def test_register_and_resolve(self) -> None:
        registry = CapabilityRegistry()
        registry.register(CapabilityKind.TOOL, "echo", noop, description="Echo")

        capability = registry.resolve(CapabilityKind.TOOL, "echo")

        assert capability.name == "echo"
        assert capability.kind is CapabilityKind.TOOL
        assert capability.handler is noop
        assert capability.input_schema == EMPTY_SCHEMA

    def test_duplicate_rejected(self) -> None:
        registry = CapabilityRegistry()
        registry.register(CapabilityKind.TOOL, "echo", noop)

        with pytest.raises(DuplicateCapability) as exc_info:
            registry.register(CapabilityKind.TOOL, "echo", noop)

        assert exc_info.value.kind == "tool"
        assert exc_info.value.name == "echo"

    def test_same_name_different_kind_allowed(self) -> None:
        registry = CapabilityRegistry()
        registry.register(CapabilityKind.TOOL, "orgs", noop)
        registry.register(CapabilityKind.PROMPT, "orgs", noop)

        assert len(registry) == 2

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(RegistryError):
            CapabilityRegistry().register(CapabilityKind.TOOL, "", noop)

    def test_non_callable_handler_rejected(self) -> None:
        with pytest.raises(RegistryError):
            CapabilityRegistry().register(CapabilityKind.TOOL, "bad", "not callable")

    def test_template_only_for_resources(self) -> None:
        with pytest.raises(RegistryError):
            CapabilityRegistry().register(
                CapabilityKind.TOOL, "t", noop, uri_template="influxdb://{x}"
            )

    def test_frozen_registry_rejects_registration(self) -> None:
        registry = CapabilityRegistry()
        registry.freeze()

        assert registry.frozen
        with pytest.raises(RegistryError):
            registry.register(CapabilityKind.TOOL, "late", noop)

    def test_template_schema_requires_variables(self) -> None:
        registry = CapabilityRegistry()
        capability = registry.register(
            CapabilityKind.RESOURCE,
            "influxdb://query/{orgName}/{fluxQuery}",
            noop,
            uri_template="influxdb://query/{orgName}/{fluxQuery}",
        )

        assert capability.required_arguments == ["orgName", "fluxQuery"]


class TestLookup:
    """resolve(), match_template() and list()."""

    def test_unknown_capability(self) -> None:
        registry = CapabilityRegistry()

        with pytest.raises(UnknownCapability) as exc_info:
            registry.resolve(CapabilityKind.TOOL, "missing")

        assert exc_info.value.name == "missing"
        assert exc_info.value.data == {"kind": "tool", "name": "missing"}

    def test_list_preserves_insertion_order(self) -> None:
        registry = CapabilityRegistry()
        for name in ["zeta", "alpha", "mid"]:
            registry.register(CapabilityKind.TOOL, name, noop)
        registry.register(CapabilityKind.PROMPT, "p", noop)

        assert registry.names(CapabilityKind.TOOL) == ["zeta", "alpha", "mid"]
        assert registry.names(CapabilityKind.PROMPT) == ["p"]

    def test_list_is_restartable(self) -> None:
        registry = CapabilityRegistry()
        registry.register(CapabilityKind.TOOL, "a", noop)

        assert registry.list(CapabilityKind.TOOL) == registry.list(CapabilityKind.TOOL)

    def test_list_separates_templates(self) -> None:
        registry = CapabilityRegistry()
        registry.register(CapabilityKind.RESOURCE, "influxdb://orgs", noop)
        registry.register(
            CapabilityKind.RESOURCE,
            "influxdb://bucket/{bucketName}/measurements",
            noop,
            uri_template="influxdb://bucket/{bucketName}/measurements",
        )

        concrete = registry.list(CapabilityKind.RESOURCE, templates=False)
        templates = registry.list(CapabilityKind.RESOURCE, templates=True)

        assert [c.name for c in concrete] == ["influxdb://orgs"]
        assert [c.name for c in templates] == ["influxdb://bucket/{bucketName}/measurements"]
        assert len(registry.list(CapabilityKind.RESOURCE)) == 2

    def test_match_template_extracts_decoded_variables(self) -> None:
        registry = CapabilityRegistry()
        registry.register(
            CapabilityKind.RESOURCE,
            "influxdb://query/{orgName}/{fluxQuery}",
            noop,
            uri_template="influxdb://query/{orgName}/{fluxQuery}",
        )

        capability, variables = registry.match_template(
            "influxdb://query/acme/from(bucket%3A%20%22b%22)"
        )

        assert capability.name == "influxdb://query/{orgName}/{fluxQuery}"
        assert variables == {"orgName": "acme", "fluxQuery": 'from(bucket: "b")'}

    def test_template_variable_spans_one_segment(self) -> None:
        registry = CapabilityRegistry()
        registry.register(
            CapabilityKind.RESOURCE,
            "influxdb://bucket/{bucketName}/measurements",
            noop,
            uri_template="influxdb://bucket/{bucketName}/measurements",
        )

        with pytest.raises(UnknownCapability):
            registry.match_template("influxdb://bucket/a/b/measurements")

    def test_has_kind(self) -> None:
        registry = CapabilityRegistry()
        registry.register(CapabilityKind.TOOL, "a", noop)

        assert registry.has_kind(CapabilityKind.TOOL)
        assert not registry.has_kind(CapabilityKind.PROMPT)


class TestDescribe:
    """Listing entries per kind."""

    def test_tool_entry(self) -> None:
        registry = CapabilityRegistry()
        schema = {"type": "object", "properties": {"q": {"type": "string"}}, "required": ["q"]}
        capability = registry.register(
            CapabilityKind.TOOL, "query", noop, schema, description="Run a query"
        )

        assert capability.describe() == {
            "name": "query",
            "description": "Run a query",
            "inputSchema": schema,
        }

    def test_prompt_entry_lists_arguments(self) -> None:
        registry = CapabilityRegistry()
        capability = registry.register(
            CapabilityKind.PROMPT,
            "greet",
            noop,
            {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Who"},
                    "tone": {"type": "string"},
                },
                "required": ["name"],
            },
            description="Greeting",
        )

        assert capability.describe()["arguments"] == [
            {"name": "name", "description": "Who", "required": True},
            {"name": "tone", "description": "", "required": False},
        ]

    def test_resource_entries(self) -> None:
        registry = CapabilityRegistry()
        concrete = registry.register(
            CapabilityKind.RESOURCE,
            "influxdb://orgs",
            noop,
            title="Organizations",
            description="Orgs",
            mime_type="text/plain",
        )
        template = registry.register(
            CapabilityKind.RESOURCE,
            "influxdb://bucket/{bucketName}/measurements",
            noop,
            title="bucket-measurements",
            uri_template="influxdb://bucket/{bucketName}/measurements",
        )

        assert concrete.describe() == {
            "name": "Organizations",
            "description": "Orgs",
            "uri": "influxdb://orgs",
            "mimeType": "text/plain",
        }
        assert template.describe()["uriTemplate"] == "influxdb://bucket/{bucketName}/measurements"
        assert "uri" not in template.describe()
