"""
Unit tests for the starter server's demo capabilities.

Tests the workshop tools, resources and prompts through the dispatcher,
including runtime registration of the bonus tool.
"""

import asyncio
import json

import pytest

from capability_registry import CapabilityKind, CapabilityStore, Dispatcher, ListChangedEvent
from capability_registry.exceptions import (
    InvalidArgumentsError,
    MissingRequiredArgumentError,
    NotFoundError
)
from starter_server.capabilities import (
    ABOUT_TEXT,
    BONUS_TOOL_NAME,
    EXAMPLE_DOCUMENT,
    LONG_TASK_STEPS,
    SERVER_NAME,
    calculate,
    register_capabilities
)


@pytest.fixture
def store():
    return register_capabilities(CapabilityStore())


@pytest.fixture
def dispatcher(store):
    return Dispatcher(store)


class TestRegistration:
    """Test the demo capability set."""

    def test_tool_names(self, dispatcher):
        names = [d.name for d in dispatcher.list_tools()]
        assert names == ["hello", "get_weather", "long_task", "calculate", "echo", "load_bonus_tool"]

    def test_resources_and_templates(self, dispatcher):
        assert [d.uri for d in dispatcher.list_resources()] == [
            "info://about", "doc://example", "config://settings"
        ]
        assert [d.uri_template for d in dispatcher.list_resource_templates()] == [
            "greeting://{name}", "item://{id}"
        ]

    def test_prompt_names(self, dispatcher):
        assert [d.name for d in dispatcher.list_prompts()] == ["greet", "code_review"]

    def test_calculate_schema(self, store):
        schema = store.get(CapabilityKind.TOOL, "calculate").input_schema.to_json_schema()

        assert schema["required"] == ["a", "b", "operation"]
        assert schema["properties"]["operation"]["enum"] == ["add", "subtract", "multiply", "divide"]


class TestTools:
    """Test demo tool behaviour."""

    @pytest.mark.asyncio
    async def test_hello(self, dispatcher):
        result = await dispatcher.call_tool("hello", {"name": "Ada"})
        assert result.text == "Hello, Ada! Welcome to MCP."

    @pytest.mark.asyncio
    async def test_hello_requires_name(self, dispatcher):
        with pytest.raises(InvalidArgumentsError) as exc_info:
            await dispatcher.call_tool("hello", {})

        assert exc_info.value.missing == ["name"]

    @pytest.mark.asyncio
    async def test_get_weather(self, dispatcher):
        result = await dispatcher.call_tool("get_weather", {"location": "Lisbon"})
        report = result.structured

        assert report["location"] == "Lisbon"
        assert report["unit"] == "celsius"
        assert 15 <= report["temperature"] <= 35
        assert 40 <= report["humidity"] <= 80
        assert json.loads(result.text) == report

    @pytest.mark.asyncio
    async def test_calculate(self, dispatcher):
        result = await dispatcher.call_tool("calculate", {"a": 2, "b": 3, "operation": "add"})
        assert result.text == "2 add 3 = 5"

    @pytest.mark.parametrize("a,b,operation,expected", [
        (10, 4, "subtract", "10 subtract 4 = 6"),
        (2.5, 4, "multiply", "2.5 multiply 4 = 10"),
        (7, 2, "divide", "7 divide 2 = 3.5"),
    ])
    def test_calculate_operations(self, a, b, operation, expected):
        assert calculate({"a": a, "b": b, "operation": operation}) == expected

    @pytest.mark.asyncio
    async def test_divide_by_zero_is_error_result(self, dispatcher):
        result = await dispatcher.call_tool("calculate", {"a": 1, "b": 0, "operation": "divide"})

        assert result.is_error
        assert "Division by zero is not allowed" in result.text

    @pytest.mark.asyncio
    async def test_calculate_rejects_unknown_operation(self, dispatcher):
        with pytest.raises(InvalidArgumentsError):
            await dispatcher.call_tool("calculate", {"a": 1, "b": 2, "operation": "power"})

    @pytest.mark.asyncio
    async def test_echo(self, dispatcher):
        result = await dispatcher.call_tool("echo", {"message": "ping"})
        assert result.text == "ping"

    @pytest.mark.asyncio
    async def test_long_task(self, dispatcher, mocker):
        sleep = mocker.patch("starter_server.capabilities.asyncio.sleep", new=mocker.AsyncMock())

        result = await dispatcher.call_tool("long_task", {"taskName": "build"})

        assert result.text == f'Task "build" completed successfully after {LONG_TASK_STEPS} steps!'
        assert sleep.await_count == LONG_TASK_STEPS


class TestBonusTool:
    """Test runtime registration through load_bonus_tool."""

    @pytest.mark.asyncio
    async def test_load_registers_and_notifies(self, store, dispatcher):
        subscription = store.notifier.subscribe()

        result = await dispatcher.call_tool("load_bonus_tool", {})

        assert "loaded" in result.text
        assert store.contains(CapabilityKind.TOOL, BONUS_TOOL_NAME)
        assert await asyncio.wait_for(subscription.get(), 1) == ListChangedEvent(CapabilityKind.TOOL)

    @pytest.mark.asyncio
    async def test_second_load_is_a_no_op(self, store, dispatcher):
        await dispatcher.call_tool("load_bonus_tool", {})
        subscription = store.notifier.subscribe()

        result = await dispatcher.call_tool("load_bonus_tool", {})
        await asyncio.sleep(0.01)

        assert result.text == f"Bonus tool '{BONUS_TOOL_NAME}' is already loaded."
        assert subscription.pending == 0
        assert [d.name for d in dispatcher.list_tools()].count(BONUS_TOOL_NAME) == 1

    @pytest.mark.asyncio
    async def test_bonus_tool_unknown_before_load(self, dispatcher):
        with pytest.raises(NotFoundError):
            await dispatcher.call_tool(BONUS_TOOL_NAME, {"a": 2, "b": 3, "operation": "power"})

    @pytest.mark.asyncio
    async def test_bonus_operations(self, dispatcher):
        await dispatcher.call_tool("load_bonus_tool", {})

        power = await dispatcher.call_tool(BONUS_TOOL_NAME, {"a": 2, "b": 10, "operation": "power"})
        modulo = await dispatcher.call_tool(BONUS_TOOL_NAME, {"a": 10, "b": 3, "operation": "modulo"})
        by_zero = await dispatcher.call_tool(BONUS_TOOL_NAME, {"a": 1, "b": 0, "operation": "modulo"})

        assert power.text == "2 power 10 = 1024"
        assert modulo.text == "10 modulo 3 = 1"
        assert by_zero.is_error


class TestResources:
    """Test demo resources."""

    @pytest.mark.asyncio
    async def test_about(self, dispatcher):
        contents = await dispatcher.read_resource("info://about")
        assert contents[0].text == ABOUT_TEXT

    @pytest.mark.asyncio
    async def test_example_document(self, dispatcher):
        contents = await dispatcher.read_resource("doc://example")

        assert contents[0].text == EXAMPLE_DOCUMENT
        assert contents[0].mime_type == "text/markdown"

    @pytest.mark.asyncio
    async def test_settings(self, dispatcher):
        contents = await dispatcher.read_resource("config://settings")
        settings = json.loads(contents[0].text)

        assert settings["name"] == SERVER_NAME
        assert contents[0].mime_type == "application/json"

    @pytest.mark.asyncio
    async def test_greeting_template(self, dispatcher):
        contents = await dispatcher.read_resource("greeting://Ada")
        assert contents[0].text.startswith("Hello, Ada!")

    @pytest.mark.asyncio
    async def test_item_template(self, dispatcher):
        contents = await dispatcher.read_resource("item://42")
        item = json.loads(contents[0].text)

        assert item["id"] == "42"
        assert item["name"] == "Item 42"


class TestPrompts:
    """Test demo prompts."""

    @pytest.mark.asyncio
    async def test_greet_default_style(self, dispatcher):
        result = await dispatcher.get_prompt("greet", {"name": "Ada"})

        assert result.description == "Greeting prompt for Ada in casual style"
        assert result.messages[0].role == "user"
        assert "Ada" in result.messages[0].content.text

    @pytest.mark.asyncio
    async def test_greet_formal(self, dispatcher):
        result = await dispatcher.get_prompt("greet", {"name": "Ada", "style": "formal"})
        assert "formal" in result.messages[0].content.text

    @pytest.mark.asyncio
    async def test_greet_requires_name(self, dispatcher):
        with pytest.raises(MissingRequiredArgumentError):
            await dispatcher.get_prompt("greet", {})

    @pytest.mark.asyncio
    async def test_code_review(self, dispatcher):
        result = await dispatcher.get_prompt(
            "code_review", {"code": "print(1)", "language": "python", "focus": "security"}
        )
        text = result.messages[0].content.text

        assert "```python\nprint(1)\n```" in text
        assert "security" in text
        assert result.description == "Code review prompt with security focus"
