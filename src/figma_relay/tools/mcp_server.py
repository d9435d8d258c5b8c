"""MCP stdio server exposing the tool table.

stdout carries the MCP protocol; all logging goes to stderr. Each tool
call validates its arguments, then becomes one ``CommandIssuer.invoke``.
The issuer connects lazily on the first call, so the server starts even
when the hub is not running yet.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import mcp.types as types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from ..config import RelayConfig
from ..issuer import CommandIssuer
from .definitions import TOOL_DEFINITIONS, get_tool

logger = logging.getLogger(__name__)

SERVER_NAME = "figma-relay"


def list_tool_specs() -> list[types.Tool]:
    """MCP tool listing built from the tool table."""
    return [
        types.Tool(name=tool.name, description=tool.description, inputSchema=tool.input_schema)
        for tool in TOOL_DEFINITIONS
    ]


async def call_tool(
    issuer: CommandIssuer,
    name: str,
    arguments: dict[str, Any] | None,
) -> list[types.TextContent]:
    """Run one tool call through the relay.

    Raises:
        ValueError: Unknown tool
        pydantic.ValidationError: Arguments do not match the tool schema
        RelayError: Transport, timeout or executor failure
    """
    tool = get_tool(name)
    params = tool.validate_arguments(arguments)
    result = await issuer.invoke(tool.command, params)
    return [types.TextContent(type="text", text=json.dumps(result, indent=2))]


def create_mcp_server(issuer: CommandIssuer) -> Server:
    """Create the MCP server bound to an issuer."""
    server: Server = Server(SERVER_NAME)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return list_tool_specs()

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
        try:
            return await call_tool(issuer, name, arguments)
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            raise

    return server


async def run_mcp_server(config: RelayConfig | None = None) -> None:
    """Serve the tool table over stdio until the client disconnects."""
    issuer = CommandIssuer(config or RelayConfig.from_env())
    server = create_mcp_server(issuer)

    try:
        async with stdio_server() as (read_stream, write_stream):
            logger.info("Figma relay MCP server started (stdio)")
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await issuer.close()
