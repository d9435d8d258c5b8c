"""Upstream tool surface: declarative tool table and its MCP server."""

from .definitions import TOOL_DEFINITIONS, TOOLS_BY_NAME, ColorParam, ToolDefinition, get_tool

__all__ = [
    "TOOL_DEFINITIONS",
    "TOOLS_BY_NAME",
    "ColorParam",
    "ToolDefinition",
    "get_tool",
]
