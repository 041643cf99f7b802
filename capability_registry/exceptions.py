"""
Exception definitions for the capability registry.

This module defines all custom exception types raised by the store, the
template matcher and the dispatcher, providing clear error categorization,
helpful error messages, and recovery suggestions.
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorSeverity(Enum):
    """Error severity levels for categorizing exceptions."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for better error classification."""
    CONFIGURATION = "configuration"
    REGISTRATION = "registration"
    LOOKUP = "lookup"
    VALIDATION = "validation"
    EXECUTION = "execution"
    SYSTEM = "system"


class CapabilityRegistryError(Exception):
    """
    Base exception class for all capability registry errors.

    All other registry exceptions inherit from this class, allowing
    for easy catching of any registry-related errors.

    This base class provides standardized error formatting, logging,
    and recovery suggestion functionality.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        category: Optional[ErrorCategory] = None,
        severity: Optional[ErrorSeverity] = None,
        recovery_suggestions: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        """
        Initialize the registry error.

        Args:
            message: Human-readable error message
            error_code: Unique error code for programmatic handling
            category: Error category for classification
            severity: Error severity level
            recovery_suggestions: List of suggested recovery actions
            context: Additional context information
            original_error: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.category = category or ErrorCategory.SYSTEM
        self.severity = severity or ErrorSeverity.MEDIUM
        self.recovery_suggestions = recovery_suggestions or []
        self.context = context or {}
        self.original_error = original_error

        self._log_error()

    def _generate_error_code(self) -> str:
        """Generate a default error code based on the exception class name."""
        class_name = self.__class__.__name__
        if class_name.endswith("Error") and class_name != "Error":
            class_name = class_name[:-len("Error")]
        # Convert CamelCase to UPPER_SNAKE_CASE
        error_code = re.sub('(.)([A-Z][a-z]+)', r'\1_\2', class_name)
        error_code = re.sub('([a-z0-9])([A-Z])', r'\1_\2', error_code).upper()
        return error_code

    def _log_error(self):
        """Log the error with appropriate level based on severity."""
        logger = logging.getLogger(__name__)

        log_message = f"[{self.error_code}] {self.message}"
        if self.context:
            log_message += f" | Context: {self.context}"
        if self.original_error:
            log_message += f" | Original: {str(self.original_error)}"

        if self.severity == ErrorSeverity.CRITICAL:
            logger.critical(log_message, exc_info=self.original_error)
        elif self.severity == ErrorSeverity.HIGH:
            logger.error(log_message, exc_info=self.original_error)
        elif self.severity == ErrorSeverity.MEDIUM:
            logger.warning(log_message)
        else:
            logger.info(log_message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a dictionary for serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "recovery_suggestions": self.recovery_suggestions,
            "context": self.context,
            "original_error": str(self.original_error) if self.original_error else None
        }

    def get_user_friendly_message(self) -> str:
        """Get a user-friendly error message with recovery suggestions."""
        message = f"Error: {self.message}"

        if self.recovery_suggestions:
            message += "\n\nSuggested actions:"
            for i, suggestion in enumerate(self.recovery_suggestions, 1):
                message += f"\n{i}. {suggestion}"

        return message


class DuplicateIdentifierError(CapabilityRegistryError):
    """
    Raised when a capability is registered under an identifier that is
    already taken.

    The store is left unchanged. For resources the identifier is the exact
    URI or the URI template string.
    """

    def __init__(self, kind: str, identifier: str):
        super().__init__(
            message=f"A {kind} capability named '{identifier}' is already registered",
            error_code="DUPLICATE_IDENTIFIER",
            category=ErrorCategory.REGISTRATION,
            severity=ErrorSeverity.MEDIUM,
            recovery_suggestions=[
                f"Choose a different identifier for the new {kind} capability",
                "Check whether the capability was already loaded before registering it again"
            ],
            context={"kind": kind, "identifier": identifier}
        )
        self.kind = kind
        self.identifier = identifier


class InvalidTemplateError(CapabilityRegistryError):
    """
    Raised when a URI template cannot be compiled.

    This covers:
    - Empty placeholders such as ``item://{}``
    - Placeholder names used more than once
    - Unbalanced braces
    - Two placeholders with no literal text between them
    """

    def __init__(self, template: str, reason: str):
        super().__init__(
            message=f"Invalid URI template '{template}': {reason}",
            error_code="INVALID_TEMPLATE",
            category=ErrorCategory.REGISTRATION,
            severity=ErrorSeverity.HIGH,
            recovery_suggestions=[
                "Use placeholders of the form {name} with a unique identifier each",
                "Separate consecutive placeholders with literal text, e.g. {a}/{b}"
            ],
            context={"template": template, "reason": reason}
        )
        self.template = template
        self.reason = reason


class NotFoundError(CapabilityRegistryError):
    """Raised when a lookup at dispatch time finds no matching capability."""

    def __init__(self, kind: str, identifier: str):
        if kind == "resources":
            message = f"Resource not found: {identifier}"
        else:
            message = f"Unknown {kind[:-1]}: {identifier}"

        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            category=ErrorCategory.LOOKUP,
            severity=ErrorSeverity.LOW,
            recovery_suggestions=[
                f"List the available {kind} to discover valid identifiers"
            ],
            context={"kind": kind, "identifier": identifier}
        )
        self.kind = kind
        self.identifier = identifier


class InvalidArgumentsError(CapabilityRegistryError):
    """
    Raised when tool arguments do not satisfy the declared input schema.

    Reported before the handler runs, so handlers never observe malformed input.
    """

    def __init__(
        self,
        tool_name: str,
        missing: Optional[List[str]] = None,
        type_errors: Optional[Dict[str, str]] = None
    ):
        self.tool_name = tool_name
        self.missing = list(missing or [])
        self.type_errors = dict(type_errors or {})

        problems = []
        if self.missing:
            problems.append("missing required parameter(s): " + ", ".join(self.missing))
        for name, detail in self.type_errors.items():
            problems.append(f"parameter '{name}' {detail}")

        super().__init__(
            message=f"Invalid arguments for tool '{tool_name}': " + "; ".join(problems),
            error_code="INVALID_ARGUMENTS",
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            recovery_suggestions=[
                "Check the tool's input schema for required parameters and their types"
            ],
            context={
                "tool": tool_name,
                "missing": self.missing,
                "type_errors": self.type_errors
            }
        )


class MissingRequiredArgumentError(CapabilityRegistryError):
    """Raised when a prompt is requested without one of its required arguments."""

    def __init__(self, prompt_name: str, argument: str):
        super().__init__(
            message=f"Prompt '{prompt_name}' requires argument '{argument}'",
            error_code="MISSING_REQUIRED_ARGUMENT",
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            recovery_suggestions=[
                f"Provide a value for '{argument}' when requesting the prompt"
            ],
            context={"prompt": prompt_name, "argument": argument}
        )
        self.prompt_name = prompt_name
        self.argument = argument


class HandlerFailureError(CapabilityRegistryError):
    """
    Raised when a capability handler raises.

    For tools this error is converted into a result-level error payload
    by the dispatcher; for resources and prompts it is raised to the caller.
    """

    def __init__(self, kind: str, identifier: str, original_error: Exception):
        super().__init__(
            message=f"Handler for {kind[:-1]} '{identifier}' failed: {original_error}",
            error_code="HANDLER_FAILURE",
            category=ErrorCategory.EXECUTION,
            severity=ErrorSeverity.HIGH,
            recovery_suggestions=[
                "Review the arguments passed to the capability",
                "Check the server log for the handler traceback"
            ],
            context={"kind": kind, "identifier": identifier},
            original_error=original_error
        )
        self.kind = kind
        self.identifier = identifier


class ConfigurationError(CapabilityRegistryError):
    """
    Raised when configuration is invalid or incomplete.

    This covers:
    - Invalid environment variable values
    - Out of range ports
    - Unknown transport or log level names
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        original_error: Optional[Exception] = None
    ):
        context = {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = str(config_value)

        if config_key:
            if "PORT" in config_key.upper():
                recovery_suggestions = [
                    f"Set the {config_key} environment variable to an integer between 1 and 65535"
                ]
            else:
                recovery_suggestions = [
                    f"Check the {config_key} configuration value",
                    "Refer to the documentation for valid configuration options"
                ]
        else:
            recovery_suggestions = [
                "Review all configuration settings",
                "Check environment variables for typos or invalid values"
            ]

        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            recovery_suggestions=recovery_suggestions,
            context=context,
            original_error=original_error
        )


def log_error_with_context(
    logger: logging.Logger,
    error: CapabilityRegistryError,
    additional_context: Optional[Dict[str, Any]] = None
):
    """
    Log an error with full context information.

    Args:
        logger: Logger instance to use
        error: The registry error to log
        additional_context: Additional context to include in the log
    """
    context = error.context.copy()
    if additional_context:
        context.update(additional_context)

    log_message = f"[{error.error_code}] {error.message}"
    if context:
        log_message += f" | Context: {context}"
    if error.original_error:
        log_message += f" | Original: {str(error.original_error)}"

    if error.severity == ErrorSeverity.CRITICAL:
        logger.critical(log_message, exc_info=error.original_error)
    elif error.severity == ErrorSeverity.HIGH:
        logger.error(log_message, exc_info=error.original_error)
    elif error.severity == ErrorSeverity.MEDIUM:
        logger.warning(log_message)
    else:
        logger.info(log_message)
