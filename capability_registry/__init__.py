"""
Capability Registry - SDK-independent core of the MCP starter server

This package holds registered tools, resources and prompts, resolves
resource URIs against templates, dispatches invocations to handlers, and
notifies subscribers when the set of capabilities changes.
"""

from .models import (
    CapabilityKind,
    ParameterSpec,
    InputSchema,
    ToolAnnotations,
    ToolDefinition,
    ResourceDefinition,
    PromptArgument,
    PromptDefinition,
    TextContent,
    ToolResult,
    ResourceContents,
    PromptMessage,
    PromptResult,
    ListChangedEvent
)
from .exceptions import (
    CapabilityRegistryError,
    DuplicateIdentifierError,
    InvalidTemplateError,
    NotFoundError,
    InvalidArgumentsError,
    MissingRequiredArgumentError,
    HandlerFailureError,
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity
)
from .uri_template import UriTemplate, compile_template, match, select_best_match
from .notifier import ChangeNotifier, Subscription
from .store import CapabilityStore
from .dispatcher import Dispatcher
from .logging_config import (
    setup_logging,
    get_logger,
    get_metrics_collector,
    track_operation,
    log_registry_event
)

__version__ = "1.0.0"
__all__ = [
    "CapabilityKind",
    "ParameterSpec",
    "InputSchema",
    "ToolAnnotations",
    "ToolDefinition",
    "ResourceDefinition",
    "PromptArgument",
    "PromptDefinition",
    "TextContent",
    "ToolResult",
    "ResourceContents",
    "PromptMessage",
    "PromptResult",
    "ListChangedEvent",
    "CapabilityRegistryError",
    "DuplicateIdentifierError",
    "InvalidTemplateError",
    "NotFoundError",
    "InvalidArgumentsError",
    "MissingRequiredArgumentError",
    "HandlerFailureError",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorSeverity",
    "UriTemplate",
    "compile_template",
    "match",
    "select_best_match",
    "ChangeNotifier",
    "Subscription",
    "CapabilityStore",
    "Dispatcher",
    "setup_logging",
    "get_logger",
    "get_metrics_collector",
    "track_operation",
    "log_registry_event"
]
