"""Figma relay CLI.

Usage:
    figma-relay hub                          # Run the relay hub on localhost:3055
    figma-relay hub --port 4000              # Hub on a custom port
    figma-relay executor                     # Serve commands from an in-memory document
    figma-relay mcp                          # MCP stdio server for agents
    figma-relay call get_document_info       # One-shot command, JSON result on stdout
    figma-relay call move_node --params '{"nodeId": "1:2", "x": 10, "y": 20}'
    figma-relay tools                        # List available tools
    figma-relay health                       # Check hub health

Connection settings default to FIGMA_RELAY_* environment variables and
can be overridden per command. Logs always go to stderr.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from typing import Any

import click
import httpx

from .config import RelayConfig
from .errors import RelayError

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Send all log output to stderr; stdout stays clean for protocol data."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )


def truncate(text: str | None, max_len: int = 60) -> str:
    """Truncate text for display."""
    if not text:
        return ""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _load_config(**overrides: Any) -> RelayConfig:
    try:
        config = RelayConfig.from_env()
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    return config.with_overrides(**overrides)


def connection_options(func: Any) -> Any:
    """Shared --host/--port/--channel options."""
    func = click.option("--channel", default=None, help="Channel name (default: figma-mcp)")(func)
    func = click.option("--port", type=int, default=None, help="Hub port (default: 3055)")(func)
    func = click.option("--host", default=None, help="Hub host (default: localhost)")(func)
    return func


@click.group()
@click.option(
    "--log-level",
    default=lambda: os.environ.get("FIGMA_RELAY_LOG_LEVEL", "INFO"),
    show_default="INFO",
    help="Log level for stderr output",
)
def main(log_level: str) -> None:
    """Figma relay - drive a design document from automation agents."""
    configure_logging(log_level)


# =============================================================================
# Servers
# =============================================================================


@main.command()
@click.option("--host", default=None, help="Host to bind to (default: localhost)")
@click.option("--port", type=int, default=None, help="Port to bind to (default: 3055)")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def hub(host: str | None, port: int | None, reload: bool) -> None:
    """Run the relay hub (WebSocket server)."""
    import uvicorn

    config = _load_config(host=host, port=port)
    click.echo(f"Starting relay hub on ws://{config.host}:{config.port}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        "figma_relay.app:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=reload,
        log_level=logging.getLevelName(logging.getLogger().level).lower(),
    )


@main.command()
@connection_options
def executor(host: str | None, port: int | None, channel: str | None) -> None:
    """Serve design commands from a fresh in-memory document."""
    from .executor import ExecutorAgent, create_document_executor

    config = _load_config(host=host, port=port, channel=channel)
    agent = ExecutorAgent(create_document_executor(), config)

    async def run() -> None:
        try:
            await agent.run()
        finally:
            await agent.stop()

    click.echo(f"Executor serving channel {config.channel} via {config.url}", err=True)
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)
    except RelayError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@connection_options
@click.option("--timeout", type=float, default=None, help="Per-request timeout in seconds")
def mcp(
    host: str | None,
    port: int | None,
    channel: str | None,
    timeout: float | None,
) -> None:
    """Run the MCP server over stdio."""
    from .tools.mcp_server import run_mcp_server

    config = _load_config(host=host, port=port, channel=channel, timeout=timeout)
    try:
        asyncio.run(run_mcp_server(config))
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)


# =============================================================================
# Client commands
# =============================================================================


@main.command()
@click.argument("command")
@click.option("--params", "params_json", default="{}", help="Command parameters as a JSON object")
@connection_options
@click.option("--timeout", type=float, default=None, help="Request timeout in seconds")
def call(
    command: str,
    params_json: str,
    host: str | None,
    port: int | None,
    channel: str | None,
    timeout: float | None,
) -> None:
    """Invoke COMMAND on the executor and print its JSON result."""
    from .issuer import CommandIssuer

    try:
        params = json.loads(params_json)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--params") from e
    if not isinstance(params, dict):
        raise click.BadParameter("Must be a JSON object", param_hint="--params")

    config = _load_config(host=host, port=port, channel=channel, timeout=timeout)

    async def run() -> Any:
        async with CommandIssuer(config) as issuer:
            return await issuer.invoke(command, params)

    try:
        result = asyncio.run(run())
    except RelayError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(result, indent=2))


@main.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
def tools(output_format: str) -> None:
    """List the tools offered to agents."""
    from .tools import TOOL_DEFINITIONS

    if output_format == FORMAT_JSON:
        data = [
            {"name": t.name, "description": t.description, "inputSchema": t.input_schema}
            for t in TOOL_DEFINITIONS
        ]
        click.echo(json.dumps(data, indent=2))
        return

    width = max(len(t.name) for t in TOOL_DEFINITIONS)
    click.echo(f"{'NAME':<{width}}  DESCRIPTION")
    for tool in TOOL_DEFINITIONS:
        click.echo(f"{tool.name:<{width}}  {truncate(tool.description)}")


@main.command()
@click.option("--url", default=None, help="Hub HTTP URL (default: from FIGMA_RELAY_HOST/PORT)")
def health(url: str | None) -> None:
    """Check hub health."""
    url = url or _load_config().http_url

    async def check() -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{url}/health")
        except httpx.ConnectError:
            click.echo(f"Cannot connect to hub at {url}", err=True)
            sys.exit(1)

        if response.status_code != 200:
            click.echo(f"Hub returned {response.status_code}", err=True)
            sys.exit(1)

        data = response.json()
        click.echo(f"Hub is healthy: {len(data.get('channels', {}))} channel(s)")
        for name, members in data.get("channels", {}).items():
            click.echo(f"  {name}: {members} member(s)")

    asyncio.run(check())


if __name__ == "__main__":
    main()
