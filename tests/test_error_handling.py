"""
Unit tests for error handling.

Tests the registry exception hierarchy and the mapping of registry errors
onto MCP error payloads and tool error results.
"""

import logging

import mcp.types as types
import pytest
from mcp.shared.exceptions import McpError

from capability_registry.exceptions import (
    CapabilityRegistryError,
    ConfigurationError,
    DuplicateIdentifierError,
    ErrorCategory,
    ErrorSeverity,
    HandlerFailureError,
    InvalidArgumentsError,
    InvalidTemplateError,
    MissingRequiredArgumentError,
    NotFoundError,
    log_error_with_context
)
from starter_server.server import ErrorHandler


class TestExceptionHierarchy:
    """Test registry exception attributes."""

    def test_all_errors_share_base(self):
        errors = [
            DuplicateIdentifierError("tools", "hello"),
            InvalidTemplateError("item://{}", "empty placeholder"),
            NotFoundError("tools", "x"),
            InvalidArgumentsError("calc", missing=["a"]),
            MissingRequiredArgumentError("greet", "name"),
            HandlerFailureError("tools", "calc", ValueError("boom")),
            ConfigurationError("bad"),
        ]

        for error in errors:
            assert isinstance(error, CapabilityRegistryError)
            assert error.recovery_suggestions

    @pytest.mark.parametrize("error,code,category", [
        (DuplicateIdentifierError("tools", "hello"), "DUPLICATE_IDENTIFIER", ErrorCategory.REGISTRATION),
        (InvalidTemplateError("a{", "unclosed"), "INVALID_TEMPLATE", ErrorCategory.REGISTRATION),
        (NotFoundError("resources", "x://y"), "NOT_FOUND", ErrorCategory.LOOKUP),
        (InvalidArgumentsError("calc"), "INVALID_ARGUMENTS", ErrorCategory.VALIDATION),
        (MissingRequiredArgumentError("greet", "name"), "MISSING_REQUIRED_ARGUMENT", ErrorCategory.VALIDATION),
        (HandlerFailureError("prompts", "greet", KeyError("k")), "HANDLER_FAILURE", ErrorCategory.EXECUTION),
        (ConfigurationError("bad", config_key="PORT"), "CONFIGURATION_ERROR", ErrorCategory.CONFIGURATION),
    ])
    def test_error_codes(self, error, code, category):
        assert error.error_code == code
        assert error.category == category

    def test_generated_error_code(self):
        class CustomProblemError(CapabilityRegistryError):
            pass

        assert CustomProblemError("x").error_code == "CUSTOM_PROBLEM"

    def test_to_dict(self):
        original = ValueError("Division by zero is not allowed")
        error = HandlerFailureError("tools", "calculate", original)

        data = error.to_dict()

        assert data["error_code"] == "HANDLER_FAILURE"
        assert data["category"] == "execution"
        assert data["severity"] == "high"
        assert data["context"] == {"kind": "tools", "identifier": "calculate"}
        assert data["original_error"] == "Division by zero is not allowed"
        assert "calculate" in data["message"]

    def test_user_friendly_message(self):
        error = ConfigurationError("Invalid integer value for PORT: 'abc'", config_key="PORT")

        message = error.get_user_friendly_message()

        assert message.startswith("Error: Invalid integer value for PORT")
        assert "Suggested actions:" in message
        assert "1. " in message

    def test_invalid_arguments_message(self):
        error = InvalidArgumentsError("calc", missing=["b"], type_errors={"a": "expected number, got str"})

        assert error.message == (
            "Invalid arguments for tool 'calc': missing required parameter(s): b; "
            "parameter 'a' expected number, got str"
        )

    def test_errors_log_themselves(self, caplog):
        with caplog.at_level(logging.INFO, logger="capability_registry.exceptions"):
            NotFoundError("tools", "ghost")

        assert "[NOT_FOUND] Unknown tool: ghost" in caplog.text

    def test_log_error_with_context(self, caplog):
        logger = logging.getLogger("test.errors")
        error = DuplicateIdentifierError("tools", "hello")

        with caplog.at_level(logging.WARNING, logger="test.errors"):
            log_error_with_context(logger, error, {"operation": "startup"})

        assert "'operation': 'startup'" in caplog.text
        assert caplog.records[-1].levelno == logging.WARNING

    def test_severity_defaults(self):
        assert CapabilityRegistryError("x").severity == ErrorSeverity.MEDIUM
        assert NotFoundError("tools", "x").severity == ErrorSeverity.LOW


class TestErrorHandlerMapping:
    """Test mapping registry errors to MCP errors."""

    @pytest.fixture
    def error_handler(self):
        return ErrorHandler()

    def test_resource_not_found(self, error_handler):
        error = NotFoundError("resources", "greeting://")
        assert error_handler.error_code_for(error) == ErrorHandler.RESOURCE_NOT_FOUND

    def test_unknown_tool_or_prompt_is_invalid_params(self, error_handler):
        assert error_handler.error_code_for(NotFoundError("tools", "x")) == types.INVALID_PARAMS
        assert error_handler.error_code_for(NotFoundError("prompts", "x")) == types.INVALID_PARAMS

    def test_validation_errors_are_invalid_params(self, error_handler):
        assert error_handler.error_code_for(InvalidArgumentsError("calc")) == types.INVALID_PARAMS
        assert error_handler.error_code_for(
            MissingRequiredArgumentError("greet", "name")
        ) == types.INVALID_PARAMS

    def test_handler_failure_is_internal_error(self, error_handler):
        error = HandlerFailureError("resources", "x://y", RuntimeError("boom"))
        assert error_handler.error_code_for(error) == types.INTERNAL_ERROR

    def test_to_mcp_error(self, error_handler):
        error = MissingRequiredArgumentError("greet", "name")

        mcp_error = error_handler.to_mcp_error(error)

        assert isinstance(mcp_error, McpError)
        assert mcp_error.error.code == types.INVALID_PARAMS
        assert mcp_error.error.message == "Prompt 'greet' requires argument 'name'"
        assert mcp_error.error.data["error_code"] == "MISSING_REQUIRED_ARGUMENT"

    def test_to_tool_result(self, error_handler):
        result = error_handler.to_tool_result(NotFoundError("tools", "unknown_tool"))

        assert isinstance(result, types.CallToolResult)
        assert result.isError is True
        assert result.content[0].text == "[NOT_FOUND] Unknown tool: unknown_tool"

    def test_error_codes_are_json_rpc_compliant(self):
        for code in (ErrorHandler.RESOURCE_NOT_FOUND, ErrorHandler.INVALID_PARAMS, ErrorHandler.INTERNAL_ERROR):
            assert -32768 <= code <= -32000
