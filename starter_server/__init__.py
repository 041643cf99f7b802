"""
MCP Starter Server Package

Workshop MCP server exposing demo tools, resources and prompts from the
capability registry over stdio, streamable HTTP and SSE.
"""

from .main import main

__version__ = "1.0.0"
__all__ = ["main"]
