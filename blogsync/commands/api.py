"""Slash command for managing the blogsync API server."""

from __future__ import annotations

from typing import List

from rich.console import Console
from rich.table import Table

from ..api import APIServerState, BlogsyncAPIServer
from ..slash_commands import SlashCommand, SlashCommandContext, render_rich

SERVER_KEY = "api_server"


def get_server(context: SlashCommandContext) -> BlogsyncAPIServer:
    """Get or create the API server instance shared through router metadata."""

    server = context.metadata.get(SERVER_KEY)
    if server is None:
        server = BlogsyncAPIServer(config_bundle=context.config, client_factory=context.router.client_for)
        context.metadata[SERVER_KEY] = server
    return server


def _handler(context: SlashCommandContext, args: List[str]) -> str:
    if not args:
        return _show_status(context)

    subcommand = args[0].lower()
    if subcommand == "start":
        return _start_server(context)
    if subcommand == "stop":
        return _stop_server(context)
    if subcommand == "status":
        return _show_status(context)
    if subcommand == "help":
        return _show_help()
    return f"[api] Unknown subcommand '{subcommand}'. Use /api help for usage."


def _start_server(context: SlashCommandContext) -> str:
    server = get_server(context)
    if server.state == APIServerState.RUNNING:
        return f"[api] Server is already running at http://{server.host}:{server.port}"

    if server.start(blocking=False):
        return f"[api] Server started at http://{server.host}:{server.port}"
    return f"[api] Failed to start server (state: {server.state.value}). See the log for details."


def _stop_server(context: SlashCommandContext) -> str:
    server = context.metadata.get(SERVER_KEY)
    if server is None or server.state != APIServerState.RUNNING:
        return "[api] Server is not running"
    if server.stop():
        return "[api] Server stopped"
    return f"[api] Failed to stop server (state: {server.state.value})"


def _show_status(context: SlashCommandContext) -> str:
    server = context.metadata.get(SERVER_KEY)

    def _render(console: Console) -> None:
        table = Table(title="API Server Status", show_header=False)
        table.add_column("Property", style="bold")
        table.add_column("Value")

        if server is None:
            table.add_row("State", "not initialized")
            table.add_row("URL", "-")
        else:
            status = server.status()
            table.add_row("State", status["state"])
            table.add_row("Host", status["host"])
            table.add_row("Port", str(status["port"]))
            if status["url"]:
                table.add_row("URL", status["url"])

        api_config = context.config.merged.get("api", {}) if context.config.merged else {}
        table.add_row("", "")
        table.add_row("Config: enabled", str(api_config.get("enabled", False)))
        table.add_row("Config: host", str(api_config.get("host", "127.0.0.1")))
        table.add_row("Config: port", str(api_config.get("port", 8000)))

        console.print(table)

    return render_rich(_render)


def _show_help() -> str:
    return """[api] Usage:
  /api              Show server status
  /api start        Start the API server
  /api stop         Stop the API server
  /api status       Show server status
  /api help         Show this help

API Endpoints (when running):
  GET    /health                 Health check
  GET    /api/v1/head            Branch head
  GET    /api/v1/commits?path=   Commit history
  GET    /api/v1/posts/{slug}    Load a post
  POST   /api/v1/posts           Publish or update a post
  DELETE /api/v1/posts/{slug}    Delete a post
  POST   /api/v1/posts/delete    Delete several posts
  GET    /api/v1/site            Site configuration
  PUT    /api/v1/site            Update site configuration

Authentication:
  Send the repository token as 'Authorization: Bearer <token>'"""


COMMAND = SlashCommand(
    name="api",
    description="Manage the HTTP API server. Usage: /api [start|stop|status|help]",
    handler=_handler,
)
