"""Main CLI entry point - one subcommand per client operation."""

import asyncio
import json
import logging
import shlex
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from toolbridge.core.configs import ClientConfig, get_client_config
from toolbridge.rpc.client import ToolClient
from toolbridge.rpc.errors import ToolBridgeError
from toolbridge.rpc.protocol import ToolInfo, ToolResult

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="toolbridge - run tools hosted by a worker process.",
)

console = Console()


# ============================================================================
# Shared Setup
# ============================================================================

def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _build_config(
    server: Optional[str],
    timeout: Optional[float],
    call_timeout: Optional[float],
    no_cache: bool,
) -> ClientConfig:
    """
    Load config and apply command-line overrides. Exits on error.
    """
    try:
        config = get_client_config()
    except ValueError as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        raise typer.Exit(1)

    if server:
        config.server_command = shlex.split(server)
    if timeout is not None:
        config.session_timeout = timeout
    if call_timeout is not None:
        config.call_timeout = call_timeout
    if no_cache:
        config.cache_enabled = False

    if not config.server_command:
        typer.echo("No worker command configured. Pass --server or set server_command", err=True)
        raise typer.Exit(1)
    return config


def parse_params(pairs: List[str]) -> Dict[str, Any]:
    """
    Turn ``key=value`` pairs into a parameter dict.

    Values are decoded as JSON when possible (numbers, booleans, lists),
    otherwise kept as plain strings.
    """
    params: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}")
        try:
            params[key] = json.loads(value)
        except json.JSONDecodeError:
            params[key] = value
    return params


def parameter_names(tool: ToolInfo) -> List[str]:
    """
    Parameter names a tool accepts.

    Workers send either a JSON Schema object (names under ``properties``)
    or a plain name-to-description mapping.
    """
    params = tool.parameters or {}
    properties = params.get("properties")
    if isinstance(properties, dict):
        params = properties
    return sorted(params.keys())


def _print_tools(tools: List[ToolInfo]) -> None:
    if not tools:
        console.print("[yellow]Worker advertises no tools[/yellow]")
        return
    table = Table(title="Available tools")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Parameters", style="dim")
    for tool in tools:
        params = ", ".join(parameter_names(tool))
        table.add_row(tool.name, tool.description, params)
    console.print(table)


def _print_result(result: ToolResult, as_json: bool) -> None:
    if result.success:
        if as_json or not isinstance(result.data, str):
            typer.echo(json.dumps(result.data, indent=2))
        else:
            typer.echo(result.data)
        return
    error = result.error
    typer.echo(f"Error [{error.code}]: {error.message}", err=True)
    if error.details:
        typer.echo(f"Details: {error.details}", err=True)


async def _list_tools(config: ClientConfig) -> List[ToolInfo]:
    async with ToolClient(config) as client:
        return client.tools


async def _call_tool(config: ClientConfig, tool: str, params: Dict[str, Any]) -> ToolResult:
    async with ToolClient(config) as client:
        return await client.execute_tool(tool, params)


# ============================================================================
# Commands
# ============================================================================

@app.command()
def tools(
    server: Optional[str] = typer.Option(None, "--server", "-s", help="Worker command line"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Session timeout in seconds"),
    call_timeout: Optional[float] = typer.Option(None, "--call-timeout", help="Per-call timeout in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed output"),
) -> None:
    """
    List the tools the worker advertises.

    Example: toolbridge tools --server "node build/main.js"
    """
    _configure_logging(verbose)
    config = _build_config(server, timeout, call_timeout, no_cache=True)

    try:
        listed = asyncio.run(_list_tools(config))
    except ToolBridgeError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    _print_tools(listed)


@app.command()
def call(
    tool: str = typer.Argument(..., help="Tool name"),
    param: List[str] = typer.Option([], "--param", "-p", help="Tool parameter as key=value"),
    server: Optional[str] = typer.Option(None, "--server", "-s", help="Worker command line"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Session timeout in seconds"),
    call_timeout: Optional[float] = typer.Option(None, "--call-timeout", help="Per-call timeout in seconds"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the result cache"),
    as_json: bool = typer.Option(False, "--json", help="Always print the result as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed output"),
) -> None:
    """
    Execute one tool and print its result.

    Example: toolbridge call get-alerts -p state=CA
    """
    _configure_logging(verbose)
    params = parse_params(param)
    config = _build_config(server, timeout, call_timeout, no_cache)

    try:
        result = asyncio.run(_call_tool(config, tool, params))
    except ToolBridgeError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    _print_result(result, as_json)
    if not result.success:
        raise typer.Exit(1)


def run() -> None:
    """Entry point for console script mapping."""
    app()


if __name__ == "__main__":
    run()
