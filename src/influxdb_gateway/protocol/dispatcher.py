"""Dispatcher - transport-agnostic request routing.

Resolves a decoded envelope against a static method table, invokes the
matched capability handler and produces the reply envelope. Both the stdio
and the HTTP transport delegate here, so behaviour is identical regardless
of how an envelope arrives.

Usage:
    dispatcher = Dispatcher(registry, server_info=ServerInfo("influxdb-gateway", "1.0.0"))

    response = await dispatcher.dispatch({"protocol": "2.0", "id": 1, "method": "ping"})
    if response is not None:
        transport.write(response.encode())

Notifications (no ``id``) never produce a reply: ``dispatch`` returns None.
Handler exceptions never escape; they become ``-32603`` error envelopes.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .envelopes import (
    DEFAULT_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    RequestEnvelope,
    ResponseEnvelope,
    decode_envelope,
)
from .errors import (
    InternalError,
    InvalidParams,
    InvalidRequest,
    MethodNotFound,
    ProtocolError,
    UnknownCapability,
)
from .registry import Capability, CapabilityKind, CapabilityRegistry

MethodHandler = Callable[[RequestEnvelope], Awaitable[Any]]


@runtime_checkable
class EnvelopeDispatcher(Protocol):
    """Anything a transport can feed envelopes into."""

    async def dispatch(self, envelope: Any) -> ResponseEnvelope | None: ...


@dataclass(frozen=True)
class ServerInfo:
    """Server identity reported by the handshake."""

    name: str
    version: str


# Protocol-level method names
class Method:
    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    PING = "ping"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    RESOURCES_LIST = "resources/list"
    RESOURCE_TEMPLATES_LIST = "resources/templates/list"
    RESOURCES_READ = "resources/read"
    PROMPTS_LIST = "prompts/list"
    PROMPTS_GET = "prompts/get"


_LIST_KEYS = {
    CapabilityKind.TOOL: "tools",
    CapabilityKind.RESOURCE: "resources",
    CapabilityKind.PROMPT: "prompts",
}


class Dispatcher:
    """Routes request envelopes to protocol methods and capability handlers."""

    def __init__(
        self,
        registry: CapabilityRegistry,
        *,
        server_info: ServerInfo,
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
        logger: logging.Logger | None = None,
    ) -> None:
        self._registry = registry
        self._server_info = server_info
        self._protocol_version = protocol_version
        self._log = logger or logging.getLogger(__name__)

        # Static method table; exact string match only
        self._methods: dict[str, MethodHandler] = {
            Method.INITIALIZE: self._initialize,
            Method.INITIALIZED: self._acknowledge,
            Method.PING: self._acknowledge,
            Method.TOOLS_LIST: self._list_tools,
            Method.RESOURCES_LIST: self._list_resources,
            Method.RESOURCE_TEMPLATES_LIST: self._list_resource_templates,
            Method.PROMPTS_LIST: self._list_prompts,
            Method.TOOLS_CALL: self._call_tool,
            Method.RESOURCES_READ: self._read_resource,
            Method.PROMPTS_GET: self._get_prompt,
        }

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    @property
    def server_info(self) -> ServerInfo:
        return self._server_info

    @property
    def protocol_version(self) -> str:
        return self._protocol_version

    @property
    def methods(self) -> list[str]:
        """All protocol methods this dispatcher recognises."""
        return list(self._methods)

    async def dispatch(
        self, envelope: Mapping[str, Any] | RequestEnvelope
    ) -> ResponseEnvelope | None:
        """Process one envelope.

        Args:
            envelope: A decoded JSON object or an already validated envelope

        Returns:
            The reply, or None when the envelope is a notification
        """
        try:
            request = decode_envelope(envelope)
        except InvalidRequest as e:
            if not e.expects_reply:
                self._log.warning(f"Dropping malformed notification: {e.data}")
                return None
            # An id of an unusable type is answered with a null id
            return ResponseEnvelope.failure(e.request_id, e)

        try:
            result = await self._route(request)
        except ProtocolError as e:
            if request.is_notification:
                self._log.warning(f"Notification {request.method} failed: {e.message}")
                return None
            return ResponseEnvelope.failure(request.id, e)
        except Exception as e:
            self._log.exception(f"Error handling {request.method} (id={request.id}): {e}")
            if request.is_notification:
                return None
            return ResponseEnvelope.failure(
                request.id,
                InternalError("Internal error", data={"detail": str(e)}),
            )

        if request.is_notification:
            return None
        return ResponseEnvelope.success(request.id, result)

    async def _route(self, request: RequestEnvelope) -> Any:
        method = self._methods.get(request.method)
        if method is None:
            raise MethodNotFound(
                f"Method not found: {request.method}",
                data={"method": request.method},
            )
        return await method(request)

    # =========================================================================
    # Handshake and probes
    # =========================================================================

    async def _initialize(self, request: RequestEnvelope) -> dict[str, Any]:
        requested = request.params.get("protocolVersion")
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else self._protocol_version

        capabilities = {
            key: {} for kind, key in _LIST_KEYS.items() if self._registry.has_kind(kind)
        }
        return {
            "protocolVersion": version,
            "capabilities": capabilities,
            "serverInfo": {
                "name": self._server_info.name,
                "version": self._server_info.version,
            },
        }

    async def _acknowledge(self, request: RequestEnvelope) -> dict[str, Any]:
        return {}

    # =========================================================================
    # Listings
    # =========================================================================

    async def _list_tools(self, request: RequestEnvelope) -> dict[str, Any]:
        return {"tools": [cap.describe() for cap in self._registry.list(CapabilityKind.TOOL)]}

    async def _list_resources(self, request: RequestEnvelope) -> dict[str, Any]:
        resources = self._registry.list(CapabilityKind.RESOURCE, templates=False)
        return {"resources": [cap.describe() for cap in resources]}

    async def _list_resource_templates(self, request: RequestEnvelope) -> dict[str, Any]:
        templates = self._registry.list(CapabilityKind.RESOURCE, templates=True)
        return {"resourceTemplates": [cap.describe() for cap in templates]}

    async def _list_prompts(self, request: RequestEnvelope) -> dict[str, Any]:
        return {"prompts": [cap.describe() for cap in self._registry.list(CapabilityKind.PROMPT)]}

    # =========================================================================
    # Invocations
    # =========================================================================

    async def _call_tool(self, request: RequestEnvelope) -> Any:
        name = _require_name(request, "name")
        arguments = _arguments(request)
        capability = self._resolve(CapabilityKind.TOOL, name)
        return await self._invoke(capability, arguments)

    async def _get_prompt(self, request: RequestEnvelope) -> Any:
        name = _require_name(request, "name")
        arguments = _arguments(request)
        capability = self._resolve(CapabilityKind.PROMPT, name)
        return await self._invoke(capability, arguments)

    async def _read_resource(self, request: RequestEnvelope) -> Any:
        key = "uri" if "uri" in request.params else "name"
        uri = _require_name(request, key)
        arguments = _arguments(request)

        try:
            capability = self._registry.resolve(CapabilityKind.RESOURCE, uri)
            variables: dict[str, str] = {}
        except UnknownCapability:
            try:
                capability, variables = self._registry.match_template(uri)
            except UnknownCapability as e:
                raise _not_found(e) from None

        return await self._invoke(capability, {**arguments, **variables, "uri": uri})

    def _resolve(self, kind: CapabilityKind, name: str) -> Capability:
        try:
            return self._registry.resolve(kind, name)
        except UnknownCapability as e:
            raise _not_found(e) from None

    async def _invoke(self, capability: Capability, arguments: dict[str, Any]) -> Any:
        missing = [key for key in capability.required_arguments if key not in arguments]
        if missing:
            raise InvalidParams(
                f"Missing required argument(s) for {capability.name}: {', '.join(missing)}",
                data={"name": capability.name, "missing": missing},
            )

        self._log.debug(f"Invoking {capability.kind.value} {capability.name}")
        try:
            result = capability.handler(arguments)
            if inspect.isawaitable(result):
                result = await result
        except ProtocolError:
            raise
        except Exception as e:
            self._log.error(f"{capability.kind.value} '{capability.name}' failed: {e}")
            raise InternalError(str(e) or "Internal error", data={"detail": str(e)}) from e
        return result


def _require_name(request: RequestEnvelope, key: str) -> str:
    value = request.params.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidParams(
            f"Missing or invalid '{key}' in params for {request.method}",
            data={"param": key},
        )
    return value


def _arguments(request: RequestEnvelope) -> dict[str, Any]:
    arguments = request.params.get("arguments")
    if arguments is None:
        return {}
    if not isinstance(arguments, dict):
        raise InvalidParams("'arguments' must be an object", data={"param": "arguments"})
    return dict(arguments)


def _not_found(error: UnknownCapability) -> MethodNotFound:
    return MethodNotFound(error.message, data={"kind": error.kind, "name": error.name})
