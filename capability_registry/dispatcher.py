"""
Request dispatcher.

Resolves an incoming capability invocation to its registered handler,
validates the input before the handler sees it, invokes the handler, and
normalizes what comes back.

Handlers may be plain functions or coroutine functions. Coroutines are
awaited on the running loop; plain functions run on a worker thread so a
blocking handler never stalls unrelated requests.
"""

import asyncio
import inspect
import json
from functools import lru_cache
from typing import Any, Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from .exceptions import (
    CapabilityRegistryError,
    HandlerFailureError,
    InvalidArgumentsError,
    MissingRequiredArgumentError,
    NotFoundError,
)
from .logging_config import get_logger, track_operation
from .models import (
    CapabilityKind,
    InputSchema,
    PromptDefinition,
    PromptMessage,
    PromptResult,
    ResourceContents,
    ResourceDefinition,
    TextContent,
    ToolDefinition,
    ToolResult,
)
from .store import CapabilityStore

logger = get_logger('dispatcher')

_PYTHON_TYPES: Dict[str, Any] = {
    "string": str,
    "number": float,
    "integer": int,
    "boolean": bool,
    "object": Dict[str, Any],
    "array": List[Any],
}


@lru_cache(maxsize=None)
def arguments_model(schema: InputSchema) -> Type[BaseModel]:
    """
    Build (once per schema) a strict pydantic model for a tool's arguments.

    Fields are aliased to the parameter names so names such as ``json`` or
    ``model_id`` cannot clash with BaseModel attributes.
    """
    fields: Dict[str, Any] = {}
    for index, param in enumerate(schema.parameters):
        annotation = _PYTHON_TYPES[param.type]
        if param.enum:
            annotation = Literal[param.enum]
        if param.required:
            fields[f"field_{index}"] = (annotation, Field(..., alias=param.name))
        else:
            fields[f"field_{index}"] = (Optional[annotation], Field(None, alias=param.name))

    return create_model(
        "ToolArguments",
        __config__=ConfigDict(strict=True, extra="ignore"),
        **fields
    )


def validate_arguments(tool_name: str, schema: InputSchema, arguments: Dict[str, Any]) -> None:
    """
    Check ``arguments`` against ``schema``.

    Raises:
        InvalidArgumentsError: Listing missing required parameters and
            type mismatches
    """
    try:
        arguments_model(schema).model_validate(arguments)
    except ValidationError as exc:
        params = {p.name: p for p in schema.parameters}
        missing: List[str] = []
        type_errors: Dict[str, str] = {}

        for error in exc.errors():
            if not error["loc"]:
                continue
            name = str(error["loc"][0])
            if error["type"] == "missing":
                if name not in missing:
                    missing.append(name)
            elif name not in type_errors:
                param = params.get(name)
                if param is not None and param.enum:
                    allowed = ", ".join(repr(v) for v in param.enum)
                    type_errors[name] = f"must be one of {allowed}"
                elif param is not None:
                    type_errors[name] = f"expected {param.type}, got {type(arguments.get(name)).__name__}"
                else:
                    type_errors[name] = error["msg"]

        raise InvalidArgumentsError(tool_name, missing=missing, type_errors=type_errors) from exc


async def invoke_handler(handler, *args):
    """Await a coroutine handler, or run a plain one on a worker thread."""
    if inspect.iscoroutinefunction(handler):
        return await handler(*args)
    result = await asyncio.to_thread(handler, *args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _to_text_blocks(value: Any) -> List[TextContent]:
    if value is None:
        return []
    if isinstance(value, TextContent):
        return [value]
    if isinstance(value, str):
        return [TextContent(value)]
    if isinstance(value, (list, tuple)):
        blocks: List[TextContent] = []
        for item in value:
            blocks.extend(_to_text_blocks(item))
        return blocks
    return [TextContent(str(value))]


def normalize_tool_result(value: Any) -> ToolResult:
    """Turn whatever a tool handler returned into a ToolResult."""
    if isinstance(value, ToolResult):
        return value
    if isinstance(value, dict):
        return ToolResult(
            content=[TextContent(json.dumps(value, indent=2, default=str))],
            structured=value
        )
    return ToolResult(content=_to_text_blocks(value))


def normalize_resource_result(
    value: Any,
    uri: str,
    definition: ResourceDefinition
) -> List[ResourceContents]:
    """Turn whatever a resource handler returned into a list of contents."""
    if isinstance(value, ResourceContents):
        return [value]
    if isinstance(value, (list, tuple)):
        contents: List[ResourceContents] = []
        for item in value:
            contents.extend(normalize_resource_result(item, uri, definition))
        return contents
    if isinstance(value, (bytes, bytearray)):
        return [ResourceContents(uri=uri, mime_type=definition.mime_type, blob=bytes(value))]
    if isinstance(value, dict):
        return [ResourceContents(
            uri=uri,
            mime_type=definition.mime_type,
            text=json.dumps(value, indent=2, default=str)
        )]
    return [ResourceContents(uri=uri, mime_type=definition.mime_type, text=str(value))]


def normalize_prompt_result(value: Any, definition: PromptDefinition) -> PromptResult:
    """Turn whatever a prompt handler returned into a PromptResult."""
    if isinstance(value, PromptResult):
        return value
    if isinstance(value, PromptMessage):
        return PromptResult(messages=[value], description=definition.description)
    if isinstance(value, str):
        return PromptResult(
            messages=[PromptMessage(role="user", content=TextContent(value))],
            description=definition.description
        )
    return PromptResult(messages=list(value), description=definition.description)


class Dispatcher:
    """
    Routes capability invocations to handlers registered in a store.

    Every failure is resolved here: lookup and validation errors are raised
    as registry errors, tool handler failures come back as error results,
    and nothing is retried.
    """

    def __init__(self, store: CapabilityStore):
        self.store = store

    def list_tools(self) -> Tuple[ToolDefinition, ...]:
        return self.store.list(CapabilityKind.TOOL)

    def list_resources(self) -> Tuple[ResourceDefinition, ...]:
        """Static resources only; templates are listed separately."""
        return tuple(d for d in self.store.list(CapabilityKind.RESOURCE) if not d.is_template)

    def list_resource_templates(self) -> Tuple[ResourceDefinition, ...]:
        return tuple(d for d in self.store.list(CapabilityKind.RESOURCE) if d.is_template)

    def list_prompts(self) -> Tuple[PromptDefinition, ...]:
        return self.store.list(CapabilityKind.PROMPT)

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        """
        Invoke a tool.

        Raises:
            NotFoundError: If no tool is registered under ``name``
            InvalidArgumentsError: If the arguments violate the input schema

        Returns:
            ToolResult: With ``is_error`` set if the handler raised
        """
        definition = self.store.get(CapabilityKind.TOOL, name)
        if definition is None:
            raise NotFoundError(CapabilityKind.TOOL.value, name)

        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidArgumentsError(
                name,
                type_errors={"arguments": f"expected object, got {type(arguments).__name__}"}
            )
        if definition.input_schema is not None:
            validate_arguments(name, definition.input_schema, arguments)

        with track_operation('call_tool', tool=name) as metrics:
            try:
                value = await invoke_handler(definition.handler, dict(arguments))
                result = normalize_tool_result(value)
            except Exception as e:
                failure = HandlerFailureError(CapabilityKind.TOOL.value, name, e)
                metrics.finish(success=False, error_message=str(e))
                return ToolResult(
                    content=[TextContent(failure.message)],
                    is_error=True,
                    error=failure.to_dict()
                )

        logger.debug(f"Tool '{name}' returned {len(result.content)} content block(s)")
        return result

    async def read_resource(self, uri: str) -> List[ResourceContents]:
        """
        Read a resource by concrete URI.

        Raises:
            NotFoundError: If neither an exact URI nor a template matches
            HandlerFailureError: If the resource handler raised
        """
        resolved = self.store.resolve_resource(uri)
        if resolved is None:
            raise NotFoundError(CapabilityKind.RESOURCE.value, uri)
        definition, params = resolved

        with track_operation('read_resource', uri=uri, resource=definition.key):
            try:
                value = await invoke_handler(definition.handler, uri, dict(params))
                return normalize_resource_result(value, uri, definition)
            except CapabilityRegistryError:
                raise
            except Exception as e:
                raise HandlerFailureError(CapabilityKind.RESOURCE.value, definition.key, e) from e

    async def get_prompt(
        self,
        name: str,
        arguments: Optional[Dict[str, str]] = None
    ) -> PromptResult:
        """
        Render a prompt.

        Omitted optional arguments stay absent from the mapping passed to
        the handler.

        Raises:
            NotFoundError: If no prompt is registered under ``name``
            MissingRequiredArgumentError: If a required argument is absent
            HandlerFailureError: If the prompt handler raised
        """
        definition = self.store.get(CapabilityKind.PROMPT, name)
        if definition is None:
            raise NotFoundError(CapabilityKind.PROMPT.value, name)

        supplied = {k: v for k, v in (arguments or {}).items() if v is not None}
        for argument in definition.arguments:
            if argument.required and argument.name not in supplied:
                raise MissingRequiredArgumentError(name, argument.name)

        with track_operation('get_prompt', prompt=name):
            try:
                value = await invoke_handler(definition.handler, supplied)
                return normalize_prompt_result(value, definition)
            except CapabilityRegistryError:
                raise
            except Exception as e:
                raise HandlerFailureError(CapabilityKind.PROMPT.value, name, e) from e
