"""Capability registry.

A static table of the resources, tools and prompts the gateway exposes.
Built once at startup from a fixed declaration list, then frozen; all
lookups after that are read-only and need no locking.

Usage:
    registry = CapabilityRegistry()
    registry.register(
        CapabilityKind.TOOL,
        "query-data",
        query_data,
        input_schema={"type": "object", "properties": {...}, "required": [...]},
        description="Execute a Flux query",
    )
    registry.freeze()

    capability = registry.resolve(CapabilityKind.TOOL, "query-data")
    result = await capability.handler({"org": "acme", "query": "..."})
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import unquote

from .errors import DuplicateCapability, RegistryError, UnknownCapability

# Handler signature: (arguments) -> result, sync or async
CapabilityHandler = Callable[[dict[str, Any]], Any]

EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}

_TEMPLATE_VAR = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


class CapabilityKind(str, Enum):
    """The three kinds of capability a client can list and invoke."""

    RESOURCE = "resource"
    TOOL = "tool"
    PROMPT = "prompt"


def _compile_template(template: str) -> re.Pattern[str]:
    """Turn ``influxdb://bucket/{name}/x`` into an anchored regex.

    Each ``{var}`` matches exactly one path segment.
    """
    parts: list[str] = []
    position = 0
    for match in _TEMPLATE_VAR.finditer(template):
        parts.append(re.escape(template[position : match.start()]))
        parts.append(f"(?P<{match.group(1)}>[^/]+)")
        position = match.end()
    parts.append(re.escape(template[position:]))
    return re.compile("^" + "".join(parts) + "$")


@dataclass(frozen=True)
class Capability:
    """One registered capability.

    Attributes:
        name: Unique name within its kind. Resources use their URI, resource
            templates their URI template.
        kind: Resource, tool or prompt
        handler: Callable invoked with the argument mapping
        input_schema: JSON Schema object describing the arguments
        description: Human-readable description for the remote agent
        title: Display name (resources and templates)
        mime_type: Content type of a resource's payload
        uri_template: Set for parameterised resources
    """

    name: str
    kind: CapabilityKind
    handler: CapabilityHandler
    input_schema: dict[str, Any] = field(default_factory=lambda: dict(EMPTY_SCHEMA))
    description: str = ""
    title: str | None = None
    mime_type: str | None = None
    uri_template: str | None = None

    @property
    def is_template(self) -> bool:
        return self.uri_template is not None

    @property
    def required_arguments(self) -> list[str]:
        return list(self.input_schema.get("required", []))

    def describe(self) -> dict[str, Any]:
        """Listing entry as returned by the ``*/list`` protocol methods."""
        match self.kind:
            case CapabilityKind.TOOL:
                return {
                    "name": self.name,
                    "description": self.description,
                    "inputSchema": self.input_schema,
                }
            case CapabilityKind.PROMPT:
                properties = self.input_schema.get("properties", {})
                required = set(self.required_arguments)
                return {
                    "name": self.name,
                    "description": self.description,
                    "arguments": [
                        {
                            "name": arg_name,
                            "description": prop.get("description", ""),
                            "required": arg_name in required,
                        }
                        for arg_name, prop in properties.items()
                    ],
                }
            case CapabilityKind.RESOURCE:
                entry: dict[str, Any] = {
                    "name": self.title or self.name,
                    "description": self.description,
                }
                if self.is_template:
                    entry["uriTemplate"] = self.uri_template
                else:
                    entry["uri"] = self.name
                if self.mime_type:
                    entry["mimeType"] = self.mime_type
                return entry


class CapabilityRegistry:
    """In-memory table of capabilities keyed by ``(kind, name)``.

    Insertion order is preserved for listings. Once ``freeze()`` has been
    called the table is immutable for the rest of the process.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[CapabilityKind, str], Capability] = {}
        self._templates: list[tuple[re.Pattern[str], Capability]] = []
        self._frozen = False

    def register(
        self,
        kind: CapabilityKind,
        name: str,
        handler: CapabilityHandler,
        input_schema: dict[str, Any] | None = None,
        *,
        description: str = "",
        title: str | None = None,
        mime_type: str | None = None,
        uri_template: str | None = None,
    ) -> Capability:
        """Add one capability.

        Raises:
            DuplicateCapability: ``(kind, name)`` is already registered
            RegistryError: The registry is frozen, or the declaration is invalid
        """
        if self._frozen:
            raise RegistryError(f"Registry is frozen; cannot register {kind.value} '{name}'")
        if not name:
            raise RegistryError("Capability name cannot be empty")
        if not callable(handler):
            raise RegistryError(f"Handler for {kind.value} '{name}' must be callable")
        if uri_template is not None and kind is not CapabilityKind.RESOURCE:
            raise RegistryError("Only resources may declare a URI template")

        key = (kind, name)
        if key in self._entries:
            raise DuplicateCapability(kind.value, name)

        if uri_template is not None and input_schema is None:
            variables = _TEMPLATE_VAR.findall(uri_template)
            input_schema = {
                "type": "object",
                "properties": {var: {"type": "string"} for var in variables},
                "required": variables,
            }

        capability = Capability(
            name=name,
            kind=kind,
            handler=handler,
            input_schema=input_schema if input_schema is not None else dict(EMPTY_SCHEMA),
            description=description,
            title=title,
            mime_type=mime_type,
            uri_template=uri_template,
        )
        self._entries[key] = capability
        if uri_template is not None:
            self._templates.append((_compile_template(uri_template), capability))
        return capability

    def resolve(self, kind: CapabilityKind, name: str) -> Capability:
        """Exact lookup.

        Raises:
            UnknownCapability: Nothing is registered under ``(kind, name)``
        """
        try:
            return self._entries[(kind, name)]
        except KeyError:
            raise UnknownCapability(kind.value, name) from None

    def match_template(self, uri: str) -> tuple[Capability, dict[str, str]]:
        """Find the first resource template matching ``uri``.

        Returns:
            The template capability and the URL-decoded template variables

        Raises:
            UnknownCapability: No template matches
        """
        for pattern, capability in self._templates:
            match = pattern.match(uri)
            if match:
                variables = {key: unquote(value) for key, value in match.groupdict().items()}
                return capability, variables
        raise UnknownCapability(CapabilityKind.RESOURCE.value, uri)

    def list(self, kind: CapabilityKind, *, templates: bool | None = None) -> list[Capability]:
        """Capabilities of one kind in insertion order.

        Args:
            kind: Which kind to list
            templates: For resources, True lists only templates, False only
                concrete resources, None both
        """
        items = [cap for (cap_kind, _), cap in self._entries.items() if cap_kind is kind]
        if templates is None:
            return items
        return [cap for cap in items if cap.is_template == templates]

    def names(self, kind: CapabilityKind) -> list[str]:
        return [cap.name for cap in self.list(kind)]

    def has_kind(self, kind: CapabilityKind) -> bool:
        return any(cap_kind is kind for cap_kind, _ in self._entries)

    def freeze(self) -> None:
        """Reject all further registrations."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Capability]:
        return iter(list(self._entries.values()))
