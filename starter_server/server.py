"""
MCP Server using Official SDK

This module adapts the capability registry to the official MCP Python SDK.
The SDK owns framing, sessions and JSON-RPC routing; every request handler
registered here delegates to the registry's Dispatcher and converts the
result (or the registry error) into MCP types.
"""

import asyncio
import logging
from contextvars import ContextVar
from typing import Any, Callable, Dict, List, Optional, Tuple

import mcp.types as types
from mcp.server.lowlevel import NotificationOptions, Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.models import InitializationOptions
from mcp.shared.exceptions import McpError
from pydantic import AnyUrl

from capability_registry import (
    CapabilityKind,
    CapabilityRegistryError,
    CapabilityStore,
    Dispatcher,
    InvalidArgumentsError,
    MissingRequiredArgumentError,
    NotFoundError,
    PromptDefinition,
    PromptResult,
    ResourceContents,
    ResourceDefinition,
    Subscription,
    ToolDefinition,
    ToolResult,
    get_metrics_collector,
)
from .capabilities import SERVER_NAME, SERVER_VERSION, register_capabilities

logger = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = """# MCP Python Starter Server

A demonstration MCP server showcasing Python SDK capabilities.

## Available Tools

### Greeting & Demos
- **hello**: Simple greeting - use to test connectivity
- **get_weather**: Returns simulated weather data
- **long_task**: Simulates slow work (takes ~1 second)
- **load_bonus_tool**: Registers an extra tool at runtime and notifies clients

### Calculations
- **calculate**: Perform arithmetic operations (add, subtract, multiply, divide)

### Utility
- **echo**: Echo back the provided message

## Available Resources

- **info://about**: Server information
- **doc://example**: Example markdown document
- **config://settings**: Server configuration as JSON
- **greeting://{name}**: Personalized greeting (template)
- **item://{id}**: Item lookup by id (template)

## Available Prompts

- **greet**: Generates a personalized greeting
- **code_review**: Structured code review prompt

## Recommended Workflows

1. **Testing Connection**: Call `hello` with your name to verify the server is responding
2. **Weather Demo**: Call `get_weather` with a location to see structured output
3. **Calculator**: Call `calculate` with numbers and an operation
4. **Dynamic Tools**: Call `load_bonus_tool`, then list tools again"""


class ErrorHandler:
    """Maps registry errors onto MCP error payloads."""

    RESOURCE_NOT_FOUND = -32002
    INVALID_PARAMS = types.INVALID_PARAMS
    INTERNAL_ERROR = types.INTERNAL_ERROR

    def error_code_for(self, error: CapabilityRegistryError) -> int:
        if isinstance(error, NotFoundError):
            if error.kind == CapabilityKind.RESOURCE.value:
                return self.RESOURCE_NOT_FOUND
            return self.INVALID_PARAMS
        if isinstance(error, (InvalidArgumentsError, MissingRequiredArgumentError)):
            return self.INVALID_PARAMS
        return self.INTERNAL_ERROR

    def to_mcp_error(self, error: CapabilityRegistryError) -> McpError:
        """Protocol-level error, used for resources and prompts."""
        return McpError(types.ErrorData(
            code=self.error_code_for(error),
            message=error.message,
            data=error.to_dict()
        ))

    def to_tool_result(self, error: CapabilityRegistryError) -> types.CallToolResult:
        """Result-level error: tool failures are successful responses with isError set."""
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=f"[{error.error_code}] {error.message}")],
            isError=True
        )


# Conversions from registry models to MCP types

def to_mcp_tool(definition: ToolDefinition) -> types.Tool:
    if definition.input_schema is not None:
        input_schema = definition.input_schema.to_json_schema()
    else:
        input_schema = {"type": "object", "properties": {}}

    annotations = None
    if definition.annotations is not None:
        hints = definition.annotations
        annotations = types.ToolAnnotations(
            title=hints.title,
            readOnlyHint=hints.read_only_hint,
            destructiveHint=hints.destructive_hint,
            idempotentHint=hints.idempotent_hint,
            openWorldHint=hints.open_world_hint
        )

    return types.Tool(
        name=definition.name,
        title=definition.title,
        description=definition.description,
        inputSchema=input_schema,
        annotations=annotations
    )


def to_mcp_resource(definition: ResourceDefinition) -> types.Resource:
    return types.Resource(
        uri=AnyUrl(definition.uri),
        name=definition.name,
        description=definition.description,
        mimeType=definition.mime_type
    )


def to_mcp_resource_template(definition: ResourceDefinition) -> types.ResourceTemplate:
    return types.ResourceTemplate(
        uriTemplate=definition.uri_template,
        name=definition.name,
        description=definition.description,
        mimeType=definition.mime_type
    )


def to_mcp_prompt(definition: PromptDefinition) -> types.Prompt:
    return types.Prompt(
        name=definition.name,
        title=definition.title,
        description=definition.description,
        arguments=[
            types.PromptArgument(
                name=argument.name,
                title=argument.title,
                description=argument.description,
                required=argument.required
            )
            for argument in definition.arguments
        ]
    )


def to_call_tool_result(result: ToolResult) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=block.text) for block in result.content],
        structuredContent=result.structured,
        isError=result.is_error
    )


def to_read_resource_contents(contents: List[ResourceContents]) -> List[ReadResourceContents]:
    return [
        ReadResourceContents(
            content=item.text if item.text is not None else item.blob,
            mime_type=item.mime_type
        )
        for item in contents
    ]


def to_get_prompt_result(result: PromptResult) -> types.GetPromptResult:
    return types.GetPromptResult(
        description=result.description,
        messages=[
            types.PromptMessage(
                role=message.role,
                content=types.TextContent(type="text", text=message.content.text)
            )
            for message in result.messages
        ]
    )


# Sessions attached while one transport run is in progress
_run_sessions: ContextVar[Optional[List[Any]]] = ContextVar("run_sessions", default=None)


class ListChangedServer(Server):
    """
    Low-level server that advertises list-changed support on every transport
    and reports the sessions a run attached once that run ends.

    Transports such as the streamable HTTP session manager build their own
    initialization options with no arguments, so the full notification
    options are the default here rather than something callers pass in.
    """

    def __init__(self, name: str, on_run_finished: Optional[Callable[[List[Any]], None]] = None, **kwargs):
        super().__init__(name, **kwargs)
        self.on_run_finished = on_run_finished

    def create_initialization_options(
        self,
        notification_options: Optional[NotificationOptions] = None,
        experimental_capabilities: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> InitializationOptions:
        if notification_options is None:
            notification_options = NotificationOptions(
                prompts_changed=True,
                resources_changed=True,
                tools_changed=True
            )
        return super().create_initialization_options(notification_options, experimental_capabilities)

    async def run(self, *args, **kwargs):
        sessions: List[Any] = []
        token = _run_sessions.set(sessions)
        try:
            return await super().run(*args, **kwargs)
        finally:
            _run_sessions.reset(token)
            if self.on_run_finished is not None:
                self.on_run_finished(sessions)


class StarterServer:
    """
    The MCP starter server.

    Owns the low-level SDK server, the dispatcher over ``store`` and the
    per-session forwarding of list-changed notifications.
    """

    def __init__(self, store: CapabilityStore):
        self.store = store
        self.dispatcher = Dispatcher(store)
        self.notifier = store.notifier
        self.error_handler = ErrorHandler()
        self.server = ListChangedServer(
            SERVER_NAME,
            on_run_finished=self._detach_sessions,
            version=SERVER_VERSION,
            instructions=SERVER_INSTRUCTIONS
        )
        self._bridges: Dict[Any, Tuple[Subscription, asyncio.Task]] = {}
        self._register_handlers()

    def _register_handlers(self) -> None:
        server = self.server
        server.list_tools()(self.list_tools)
        # Arguments are validated by the dispatcher against the registry schema
        server.call_tool(validate_input=False)(self.call_tool)
        server.list_resources()(self.list_resources)
        server.list_resource_templates()(self.list_resource_templates)
        server.read_resource()(self.read_resource)
        server.list_prompts()(self.list_prompts)
        server.get_prompt()(self.get_prompt)

    def create_initialization_options(self) -> InitializationOptions:
        return self.server.create_initialization_options()

    # Request handlers

    async def list_tools(self) -> List[types.Tool]:
        self._attach_current_session()
        return [to_mcp_tool(definition) for definition in self.dispatcher.list_tools()]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> types.CallToolResult:
        self._attach_current_session()
        try:
            result = await self.dispatcher.call_tool(name, arguments or {})
        except CapabilityRegistryError as e:
            return self.error_handler.to_tool_result(e)
        return to_call_tool_result(result)

    async def list_resources(self) -> List[types.Resource]:
        self._attach_current_session()
        return [to_mcp_resource(definition) for definition in self.dispatcher.list_resources()]

    async def list_resource_templates(self) -> List[types.ResourceTemplate]:
        self._attach_current_session()
        return [
            to_mcp_resource_template(definition)
            for definition in self.dispatcher.list_resource_templates()
        ]

    async def read_resource(self, uri: AnyUrl) -> List[ReadResourceContents]:
        self._attach_current_session()
        try:
            contents = await self.dispatcher.read_resource(str(uri))
        except CapabilityRegistryError as e:
            raise self.error_handler.to_mcp_error(e) from e
        return to_read_resource_contents(contents)

    async def list_prompts(self) -> List[types.Prompt]:
        self._attach_current_session()
        return [to_mcp_prompt(definition) for definition in self.dispatcher.list_prompts()]

    async def get_prompt(self, name: str, arguments: Optional[Dict[str, str]]) -> types.GetPromptResult:
        self._attach_current_session()
        try:
            result = await self.dispatcher.get_prompt(name, arguments)
        except CapabilityRegistryError as e:
            raise self.error_handler.to_mcp_error(e) from e
        return to_get_prompt_result(result)

    # List-changed forwarding

    def _attach_current_session(self) -> None:
        """Subscribe the requesting session to list-changed events, once."""
        try:
            session = self.server.request_context.session
        except LookupError:
            return  # called outside of a request, e.g. from tests
        self.attach_session(session)

    def attach_session(self, session: Any) -> Optional[Subscription]:
        """
        Start forwarding list-changed events to ``session``.

        When called during a transport run, forwarding stops as soon as
        that run ends.
        """
        if session in self._bridges:
            return None
        subscription = self.notifier.subscribe()
        task = asyncio.create_task(self._forward_events(session, subscription))
        self._bridges[session] = (subscription, task)

        run_sessions = _run_sessions.get()
        if run_sessions is not None:
            run_sessions.append(session)

        logger.debug(f"Session subscribed to list-changed events ({subscription.subscription_id})")
        return subscription

    def detach_session(self, session: Any) -> None:
        """Stop forwarding to ``session``; no-op if it is not attached."""
        bridge = self._bridges.pop(session, None)
        if bridge is None:
            return
        subscription, task = bridge
        subscription.close()
        task.cancel()
        logger.debug(f"Session unsubscribed from list-changed events ({subscription.subscription_id})")

    def _detach_sessions(self, sessions: List[Any]) -> None:
        for session in sessions:
            self.detach_session(session)

    async def _forward_events(self, session: Any, subscription: Subscription) -> None:
        try:
            async for event in subscription:
                await self._send_list_changed(session, event.kind)
        except Exception as e:
            # A closed session cannot be written to; stop forwarding for it
            logger.info(f"Stopped forwarding list-changed events to session: {e}")
        finally:
            subscription.close()
            bridge = self._bridges.get(session)
            if bridge is not None and bridge[0] is subscription:
                del self._bridges[session]

    async def _send_list_changed(self, session: Any, kind: CapabilityKind) -> None:
        if kind is CapabilityKind.TOOL:
            await session.send_tool_list_changed()
        elif kind is CapabilityKind.RESOURCE:
            await session.send_resource_list_changed()
        else:
            await session.send_prompt_list_changed()
        logger.debug(f"Sent {kind.value} list-changed notification")

    @property
    def session_count(self) -> int:
        return len(self._bridges)

    async def shutdown(self) -> None:
        """Stop every forwarding task and log the dispatch metrics summary."""
        tasks = [task for _, task in self._bridges.values()]
        self._detach_sessions(list(self._bridges))
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        metrics = get_metrics_collector()
        metrics.log_metrics_summary()
        metrics.clear_metrics()
        logger.info("MCP Server notification forwarding stopped")


def create_server_app(store: Optional[CapabilityStore] = None) -> StarterServer:
    """Create the MCP server with the demo capabilities registered."""
    if store is None:
        store = register_capabilities(CapabilityStore())
    return StarterServer(store)
