"""
Data models for the capability registry.

This module defines the capability definitions held by the store, the
result types produced by the dispatcher, and the list-changed event
delivered to subscribers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .uri_template import UriTemplate, compile_template


class CapabilityKind(Enum):
    """
    The three kinds of capability an MCP server exposes.

    Values match the MCP method prefixes (``tools/list``, ``resources/read`` ...).
    """
    TOOL = "tools"
    RESOURCE = "resources"
    PROMPT = "prompts"


# JSON Schema type names accepted in tool input schemas
PARAMETER_TYPES = ("string", "number", "integer", "boolean", "object", "array")


@dataclass(frozen=True)
class ParameterSpec:
    """A single named parameter of a tool's input schema."""
    name: str
    type: str = "string"
    required: bool = False
    description: Optional[str] = None
    enum: Optional[Tuple[Any, ...]] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Parameter name must be non-empty")
        if self.type not in PARAMETER_TYPES:
            raise ValueError(
                f"Unsupported parameter type '{self.type}' for '{self.name}'. "
                f"Expected one of: {', '.join(PARAMETER_TYPES)}"
            )
        if self.enum is not None:
            object.__setattr__(self, "enum", tuple(self.enum))

    def to_json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema


@dataclass(frozen=True)
class InputSchema:
    """
    Ordered set of named parameters accepted by a tool.

    Rendered as a JSON Schema object for discovery responses.
    """
    parameters: Tuple[ParameterSpec, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "parameters", tuple(self.parameters))
        seen = set()
        for param in self.parameters:
            if param.name in seen:
                raise ValueError(f"Duplicate parameter name '{param.name}' in input schema")
            seen.add(param.name)

    @property
    def required(self) -> List[str]:
        return [p.name for p in self.parameters if p.required]

    def to_json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {
            "type": "object",
            "properties": {p.name: p.to_json_schema() for p in self.parameters},
        }
        if self.required:
            schema["required"] = self.required
        return schema


@dataclass(frozen=True)
class ToolAnnotations:
    """
    Behavioural hints about a tool.

    Informational only: the dispatcher never enforces them.
    """
    title: Optional[str] = None
    read_only_hint: Optional[bool] = None
    destructive_hint: Optional[bool] = None
    idempotent_hint: Optional[bool] = None
    open_world_hint: Optional[bool] = None


@dataclass
class ToolDefinition:
    """A named, invocable action with structured arguments."""
    name: str
    description: str
    handler: Callable[..., Any]
    input_schema: Optional[InputSchema] = None
    annotations: Optional[ToolAnnotations] = None
    title: Optional[str] = None

    @property
    def key(self) -> str:
        return self.name


@dataclass
class ResourceDefinition:
    """
    Content addressable by a URI.

    Exactly one of ``uri`` (static resource) and ``uri_template``
    (templated resource) must be given. Templates are compiled on
    construction, so a malformed template never reaches the store.
    """
    name: str
    description: str
    handler: Callable[..., Any]
    mime_type: str = "text/plain"
    uri: Optional[str] = None
    uri_template: Optional[str] = None
    compiled: Optional[UriTemplate] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        if (self.uri is None) == (self.uri_template is None):
            raise ValueError(
                f"Resource '{self.name}' needs exactly one of 'uri' or 'uri_template'"
            )
        if self.uri_template is not None:
            self.compiled = compile_template(self.uri_template)

    @property
    def is_template(self) -> bool:
        return self.uri_template is not None

    @property
    def key(self) -> str:
        return self.uri if self.uri is not None else self.uri_template


@dataclass(frozen=True)
class PromptArgument:
    """A named argument accepted by a prompt."""
    name: str
    description: Optional[str] = None
    required: bool = False
    title: Optional[str] = None


@dataclass
class PromptDefinition:
    """A named, parameterized template producing role-tagged messages."""
    name: str
    description: str
    handler: Callable[..., Any]
    arguments: Tuple[PromptArgument, ...] = ()
    title: Optional[str] = None

    def __post_init__(self):
        self.arguments = tuple(self.arguments)

    @property
    def key(self) -> str:
        return self.name


Definition = Union[ToolDefinition, ResourceDefinition, PromptDefinition]


@dataclass(frozen=True)
class TextContent:
    """A block of text content."""
    text: str
    type: str = "text"


@dataclass
class ToolResult:
    """
    Result of a tool invocation.

    Handler failures are reported here with ``is_error`` set rather than
    raised, so they reach the client as a successful protocol response.
    """
    content: List[TextContent] = field(default_factory=list)
    is_error: bool = False
    error: Optional[Dict[str, Any]] = None
    structured: Optional[Dict[str, Any]] = None

    @property
    def text(self) -> str:
        return "\n".join(block.text for block in self.content)


@dataclass
class ResourceContents:
    """Contents of a resource read, either text or binary."""
    uri: str
    mime_type: Optional[str] = None
    text: Optional[str] = None
    blob: Optional[bytes] = None

    def __post_init__(self):
        if (self.text is None) == (self.blob is None):
            raise ValueError("ResourceContents needs exactly one of 'text' or 'blob'")


@dataclass(frozen=True)
class PromptMessage:
    """A role-tagged conversational message."""
    role: str
    content: TextContent

    def __post_init__(self):
        if self.role not in ("user", "assistant"):
            raise ValueError(f"Unsupported message role '{self.role}'")


@dataclass
class PromptResult:
    """Messages produced by a prompt, with an optional description."""
    messages: List[PromptMessage]
    description: Optional[str] = None


@dataclass(frozen=True)
class ListChangedEvent:
    """Tells subscribers the list of capabilities of ``kind`` has changed."""
    kind: CapabilityKind
