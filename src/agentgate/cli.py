"""CLI for the agentgate engine."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from .config import Config
from .credentials import EnvCredentialStore
from .db import Database
from .errors import AgentGateError
from .model_client import load_model_client
from .orchestrator import Orchestrator
from .prompts import AGENT_TEMPLATES
from .registry import ToolServerRegistry

console = Console()


def _config(ctx: click.Context) -> Config:
    data_dir = ctx.obj["data_dir"]
    return Config.get(Path(data_dir) if data_dir else None)


def _make_orchestrator(ctx: click.Context, start: bool = True) -> Orchestrator:
    cfg = _config(ctx)
    db = Database(cfg.db_path)
    model_client = None
    if ctx.obj["model_client"]:
        try:
            model_client = load_model_client(ctx.obj["model_client"])
        except AgentGateError as e:
            _fail(str(e))
    orch = Orchestrator(
        cfg,
        db=db,
        credentials=EnvCredentialStore(writable=not ctx.obj["read_only_secrets"]),
        model_client=model_client,
        registry=ToolServerRegistry(db),
    )
    if start:
        orch.start()
    return orch


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    sys.exit(1)


@click.group()
@click.option("--data-dir", envvar="AGENTGATE_DATA", default=None, help="Data directory")
@click.option("--model-client", envvar="AGENTGATE_MODEL_CLIENT", default=None,
              help="Model client factory as module:attr")
@click.option("--read-only-secrets", is_flag=True, envvar="AGENTGATE_READ_ONLY_SECRETS",
              help="Refuse secrets set at runtime; read them from the environment only")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def main(
    ctx: click.Context,
    data_dir: str | None,
    model_client: str | None,
    read_only_secrets: bool,
    verbose: bool,
) -> None:
    """agentgate: run tool-using agents behind a human approval gate."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir
    ctx.obj["model_client"] = model_client
    ctx.obj["read_only_secrets"] = read_only_secrets


@main.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Initialize the data directory and database."""
    cfg = _config(ctx)
    Database(cfg.db_path).close()
    console.print(f"[green]Initialized at {cfg.base_dir}[/green]")


@main.command()
@click.pass_context
def servers(ctx: click.Context) -> None:
    """List tool servers."""
    orch = _make_orchestrator(ctx, start=False)
    table = Table(title="Tool servers")
    table.add_column("Name", no_wrap=True)
    table.add_column("Enabled")
    table.add_column("Tools")
    table.add_column("Command", overflow="fold")
    for s in orch.list_servers():
        enabled = "[green]yes[/green]" if s["enabled"] else "[dim]no[/dim]"
        table.add_row(s["name"], enabled, str(s["tools"]), s["command"])
    console.print(table)


def _set_enabled(ctx: click.Context, name: str, enabled: bool) -> None:
    orch = _make_orchestrator(ctx, start=False)
    try:
        orch.set_server_enabled(name, enabled)
    except AgentGateError as e:
        _fail(str(e))
    console.print(f"[green]{'Enabled' if enabled else 'Disabled'} {name}[/green]")


@main.command()
@click.argument("name")
@click.pass_context
def enable(ctx: click.Context, name: str) -> None:
    """Enable a tool server."""
    _set_enabled(ctx, name, True)


@main.command()
@click.argument("name")
@click.pass_context
def disable(ctx: click.Context, name: str) -> None:
    """Disable a tool server."""
    _set_enabled(ctx, name, False)


@main.command("set-directory")
@click.argument("directory", type=click.Path(file_okay=False))
@click.pass_context
def set_directory(ctx: click.Context, directory: str) -> None:
    """Restrict the filesystem server to DIRECTORY and enable it."""
    orch = _make_orchestrator(ctx, start=False)
    try:
        orch.configure_directory(str(Path(directory).expanduser().resolve()))
    except AgentGateError as e:
        _fail(str(e))
    console.print(f"[green]Filesystem server now uses {orch.filesystem_directory()}[/green]")


@main.command()
@click.argument("name")
def secret(name: str) -> None:
    """Show where secret NAME is read from and whether it is set."""
    store = EnvCredentialStore()
    present = asyncio.run(store.has_secret(name))
    state = "[green]set[/green]" if present else "[yellow]not set[/yellow]"
    console.print(f"{name}: {state}")
    if not present:
        console.print(f"export {store.env_name(name)}=<value>")


@main.command()
@click.option("--conversation", default=None, help="Filter by conversation ID")
@click.pass_context
def sessions(ctx: click.Context, conversation: str | None) -> None:
    """List saved sessions that can be resumed."""
    db = Database(_config(ctx).db_path)
    rows = db.list_sessions(conversation)
    if not rows:
        console.print("[dim]No sessions.[/dim]")
        return
    table = Table(title="Sessions")
    table.add_column("ID", no_wrap=True)
    table.add_column("Status")
    table.add_column("Prompt", max_width=40)
    table.add_column("Tokens")
    table.add_column("Updated")
    for s in rows:
        table.add_row(s.id, s.status.value, s.original_prompt[:40], str(s.token_estimate),
                      str(s.updated_at)[:19])
    console.print(table)


@main.command()
def templates() -> None:
    """List built-in agent templates."""
    table = Table(title="Templates")
    table.add_column("ID", no_wrap=True)
    table.add_column("Name")
    table.add_column("Permission")
    table.add_column("Needs directory")
    for t in AGENT_TEMPLATES:
        table.add_row(t.id, t.name, t.tool_permission.value, "yes" if t.requires_directory else "")
    console.print(table)


@main.command()
@click.argument("agent_id")
@click.option("-n", "--lines", default=50, help="Number of lines")
@click.pass_context
def logs(ctx: click.Context, agent_id: str, lines: int) -> None:
    """View an agent's step log."""
    orch = _make_orchestrator(ctx, start=False)
    log_text = orch.get_logs(agent_id, lines=lines)
    if log_text:
        console.print(log_text, markup=False)
    else:
        console.print(f"[dim]No logs for agent {agent_id}[/dim]")


@main.command("mcp-server")
@click.pass_context
def mcp_server(ctx: click.Context) -> None:
    """Start the MCP server (stdio transport)."""
    from .mcp_server import create_mcp_server

    orch = _make_orchestrator(ctx)
    try:
        create_mcp_server(orch).run(transport="stdio")
    finally:
        orch.shutdown()


@main.command()
@click.option("--port", default=5555, help="Dashboard port")
@click.option("--host", default="127.0.0.1", help="Dashboard host")
@click.pass_context
def dashboard(ctx: click.Context, port: int, host: str) -> None:
    """Start the dashboard JSON API."""
    from .dashboard.app import create_app

    orch = _make_orchestrator(ctx)
    app = create_app(orch)
    console.print(f"[green]Dashboard running at http://{host}:{port}[/green]")
    try:
        app.run(host=host, port=port, debug=False)
    finally:
        orch.shutdown()
