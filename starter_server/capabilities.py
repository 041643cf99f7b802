"""
Demo capabilities of the MCP starter server.

Registers the workshop tools, resources and prompts into a capability
store. Everything here is plain application code plugged into the
registry; none of it knows about the MCP SDK.
"""

import asyncio
import json
import random
from typing import Any, Dict

from capability_registry import (
    CapabilityKind,
    CapabilityStore,
    DuplicateIdentifierError,
    InputSchema,
    ParameterSpec,
    PromptArgument,
    PromptDefinition,
    PromptMessage,
    PromptResult,
    ResourceDefinition,
    TextContent,
    ToolAnnotations,
    ToolDefinition,
    get_logger,
)

logger = get_logger('capabilities')

SERVER_NAME = "mcp-python-starter"
SERVER_VERSION = "1.0.0"

BONUS_TOOL_NAME = "bonus_calculator"
LONG_TASK_STEPS = 5
LONG_TASK_STEP_SECONDS = 0.2

WEATHER_CONDITIONS = ("sunny", "cloudy", "rainy", "windy")

GREETING_STYLES = {
    "formal": "Please compose a formal, professional greeting for {name}.",
    "casual": "Write a casual, friendly hello to {name}.",
    "enthusiastic": "Create an excited, enthusiastic greeting for {name}!",
}

REVIEW_FOCUS = {
    "security": "Focus on security vulnerabilities and potential exploits.",
    "performance": "Focus on performance optimizations and efficiency issues.",
    "readability": "Focus on code clarity, naming, and maintainability.",
    "all": "Provide a comprehensive review covering security, performance, and readability.",
}

ABOUT_TEXT = f"""MCP Python Starter v{SERVER_VERSION}

This is a feature-complete MCP server demonstrating:
- Tools with structured output
- Resources (static and templated)
- Prompts with arguments
- Dynamic tool registration with list-changed notifications
- Multiple transport options (stdio, HTTP)

For more information, visit: https://modelcontextprotocol.io"""

EXAMPLE_DOCUMENT = """# Example Document

This is an example markdown document served as an MCP resource.

## Features

- **Bold text** and *italic text*
- Lists and formatting
- Code blocks

```python
hello = "world"
```

## Links

- [MCP Documentation](https://modelcontextprotocol.io)
- [Python SDK](https://github.com/modelcontextprotocol/python-sdk)"""


# Tools

def hello(arguments: Dict[str, Any]) -> str:
    return f"Hello, {arguments['name']}! Welcome to MCP."


def get_weather(arguments: Dict[str, Any]) -> Dict[str, Any]:
    """Simulated weather report."""
    return {
        "location": arguments["location"],
        "temperature": random.randint(15, 35),
        "unit": "celsius",
        "conditions": random.choice(WEATHER_CONDITIONS),
        "humidity": random.randint(40, 80),
    }


async def long_task(arguments: Dict[str, Any]) -> str:
    """Simulates slow work by suspending once per step."""
    task_name = arguments["taskName"]
    for step in range(1, LONG_TASK_STEPS + 1):
        await asyncio.sleep(LONG_TASK_STEP_SECONDS)
        logger.debug(f"long_task '{task_name}': step {step}/{LONG_TASK_STEPS}")
    return f'Task "{task_name}" completed successfully after {LONG_TASK_STEPS} steps!'


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def calculate(arguments: Dict[str, Any]) -> str:
    a = float(arguments["a"])
    b = float(arguments["b"])
    operation = arguments["operation"]

    if operation == "add":
        result = a + b
    elif operation == "subtract":
        result = a - b
    elif operation == "multiply":
        result = a * b
    else:
        if b == 0:
            raise ValueError("Division by zero is not allowed")
        result = a / b

    return f"{_format_number(a)} {operation} {_format_number(b)} = {_format_number(result)}"


def echo(arguments: Dict[str, Any]) -> str:
    return arguments["message"]


def bonus_calculator(arguments: Dict[str, Any]) -> str:
    a = float(arguments["a"])
    b = float(arguments["b"])
    operation = arguments["operation"]

    if operation == "power":
        result = a ** b
    else:
        if b == 0:
            raise ValueError("Modulo by zero is not allowed")
        result = a % b

    return f"{_format_number(a)} {operation} {_format_number(b)} = {_format_number(result)}"


BONUS_TOOL = ToolDefinition(
    name=BONUS_TOOL_NAME,
    title="Bonus Calculator",
    description="Advanced arithmetic (power, modulo), loaded at runtime by load_bonus_tool",
    handler=bonus_calculator,
    input_schema=InputSchema((
        ParameterSpec("a", "number", required=True, description="First operand"),
        ParameterSpec("b", "number", required=True, description="Second operand"),
        ParameterSpec("operation", "string", required=True, description="Operation to perform",
                      enum=("power", "modulo")),
    )),
    annotations=ToolAnnotations(read_only_hint=True, idempotent_hint=True, open_world_hint=False),
)


def make_load_bonus_tool(store: CapabilityStore):
    """
    Build the handler that registers the bonus tool.

    Whether the bonus tool is loaded is answered by the store alone.
    """
    def load_bonus_tool(arguments: Dict[str, Any]) -> str:
        if store.contains(CapabilityKind.TOOL, BONUS_TOOL_NAME):
            return f"Bonus tool '{BONUS_TOOL_NAME}' is already loaded."
        try:
            store.register_tool(BONUS_TOOL)
        except DuplicateIdentifierError:
            # Lost a race with a concurrent load
            return f"Bonus tool '{BONUS_TOOL_NAME}' is already loaded."
        logger.info(f"Bonus tool '{BONUS_TOOL_NAME}' registered at runtime")
        return f"Bonus tool '{BONUS_TOOL_NAME}' loaded. Refresh the tool list to use it."

    return load_bonus_tool


def register_tools(store: CapabilityStore) -> None:
    store.register_tool(ToolDefinition(
        name="hello",
        title="Hello",
        description="A friendly greeting tool that says hello to someone",
        handler=hello,
        input_schema=InputSchema((
            ParameterSpec("name", "string", required=True, description="Name of the person to greet"),
        )),
        annotations=ToolAnnotations(read_only_hint=True, idempotent_hint=True, open_world_hint=False),
    ))

    store.register_tool(ToolDefinition(
        name="get_weather",
        title="Get Weather",
        description="Get current weather for a location (simulated)",
        handler=get_weather,
        input_schema=InputSchema((
            ParameterSpec("location", "string", required=True, description="City name or coordinates"),
        )),
        annotations=ToolAnnotations(read_only_hint=True, open_world_hint=False),
    ))

    store.register_tool(ToolDefinition(
        name="long_task",
        title="Long Task",
        description="A task that takes time to complete (about one second)",
        handler=long_task,
        input_schema=InputSchema((
            ParameterSpec("taskName", "string", required=True, description="Name for this task"),
        )),
        annotations=ToolAnnotations(read_only_hint=True, open_world_hint=False),
    ))

    store.register_tool(ToolDefinition(
        name="calculate",
        title="Calculator",
        description="Perform basic arithmetic operations",
        handler=calculate,
        input_schema=InputSchema((
            ParameterSpec("a", "number", required=True, description="First operand"),
            ParameterSpec("b", "number", required=True, description="Second operand"),
            ParameterSpec("operation", "string", required=True, description="Arithmetic operation",
                          enum=("add", "subtract", "multiply", "divide")),
        )),
        annotations=ToolAnnotations(read_only_hint=True, idempotent_hint=True, open_world_hint=False),
    ))

    store.register_tool(ToolDefinition(
        name="echo",
        title="Echo",
        description="Echo back the provided message",
        handler=echo,
        input_schema=InputSchema((
            ParameterSpec("message", "string", required=True, description="Message to echo back"),
        )),
        annotations=ToolAnnotations(read_only_hint=True, idempotent_hint=True, open_world_hint=False),
    ))

    store.register_tool(ToolDefinition(
        name="load_bonus_tool",
        title="Load Bonus Tool",
        description=f"Dynamically register the '{BONUS_TOOL_NAME}' tool and notify clients",
        handler=make_load_bonus_tool(store),
        input_schema=InputSchema(),
        annotations=ToolAnnotations(read_only_hint=False, destructive_hint=False, idempotent_hint=True),
    ))


# Resources

def read_about(uri: str, params: Dict[str, str]) -> str:
    return ABOUT_TEXT


def read_example_document(uri: str, params: Dict[str, str]) -> str:
    return EXAMPLE_DOCUMENT


def read_settings(uri: str, params: Dict[str, str]) -> str:
    settings = {
        "version": SERVER_VERSION,
        "name": SERVER_NAME,
        "capabilities": {
            "tools": True,
            "resources": True,
            "prompts": True,
        },
        "settings": {
            "precision": 2,
            "allow_negative": True,
        },
    }
    return json.dumps(settings, indent=2)


def read_greeting(uri: str, params: Dict[str, str]) -> str:
    return f"Hello, {params['name']}! This greeting was generated from a resource template."


def read_item(uri: str, params: Dict[str, str]) -> str:
    item_id = params["id"]
    return json.dumps({
        "id": item_id,
        "name": f"Item {item_id}",
        "description": f"Dynamically resolved item with id {item_id}",
    }, indent=2)


def register_resources(store: CapabilityStore) -> None:
    store.register_resource(ResourceDefinition(
        uri="info://about",
        name="About",
        description="Information about this MCP server",
        mime_type="text/plain",
        handler=read_about,
    ))
    store.register_resource(ResourceDefinition(
        uri="doc://example",
        name="Example Document",
        description="An example markdown document",
        mime_type="text/markdown",
        handler=read_example_document,
    ))
    store.register_resource(ResourceDefinition(
        uri="config://settings",
        name="Server Settings",
        description="Server configuration settings",
        mime_type="application/json",
        handler=read_settings,
    ))
    store.register_resource(ResourceDefinition(
        uri_template="greeting://{name}",
        name="Personalized Greeting",
        description="A greeting for the name given in the URI",
        mime_type="text/plain",
        handler=read_greeting,
    ))
    store.register_resource(ResourceDefinition(
        uri_template="item://{id}",
        name="Item",
        description="An item looked up by id",
        mime_type="application/json",
        handler=read_item,
    ))


# Prompts

def greet_prompt(arguments: Dict[str, str]) -> PromptResult:
    name = arguments["name"]
    style = arguments.get("style", "casual")
    template = GREETING_STYLES.get(style, GREETING_STYLES["casual"])

    return PromptResult(
        description=f"Greeting prompt for {name} in {style} style",
        messages=[PromptMessage(role="user", content=TextContent(template.format(name=name)))],
    )


def code_review_prompt(arguments: Dict[str, str]) -> PromptResult:
    code = arguments["code"]
    language = arguments.get("language", "unknown")
    focus = arguments.get("focus", "all")
    instruction = REVIEW_FOCUS.get(focus, REVIEW_FOCUS["all"])

    text = (
        f"Please review the following {language} code. {instruction}\n"
        f"\n"
        f"```{language}\n"
        f"{code}\n"
        f"```"
    )
    return PromptResult(
        description=f"Code review prompt with {focus} focus",
        messages=[PromptMessage(role="user", content=TextContent(text))],
    )


def register_prompts(store: CapabilityStore) -> None:
    store.register_prompt(PromptDefinition(
        name="greet",
        title="Greeting",
        description="Generate a greeting in a specific style",
        handler=greet_prompt,
        arguments=(
            PromptArgument("name", description="Name of the person to greet", required=True, title="Name"),
            PromptArgument("style", description="Greeting style: formal, casual or enthusiastic", title="Style"),
        ),
    ))
    store.register_prompt(PromptDefinition(
        name="code_review",
        title="Code Review",
        description="Request a code review with specific focus areas",
        handler=code_review_prompt,
        arguments=(
            PromptArgument("code", description="The code to review", required=True, title="Code"),
            PromptArgument("language", description="Programming language", title="Language"),
            PromptArgument("focus", description="Focus area: security, performance, readability or all",
                           title="Focus"),
        ),
    ))


def register_capabilities(store: CapabilityStore) -> CapabilityStore:
    """Register every demo tool, resource and prompt into ``store``."""
    register_tools(store)
    register_resources(store)
    register_prompts(store)
    logger.info(f"Registered demo capabilities: {store!r}")
    return store
