"""Slash command for listing recent commits on the branch."""

from __future__ import annotations

from typing import List, Optional, Tuple

from rich.console import Console
from rich.table import Table

from ..slash_commands import SlashCommand, SlashCommandContext, render_rich
from ..sync import SyncError

DEFAULT_LIMIT = 10
USAGE = "[log] Usage: /log [PATH] [-n COUNT]"


def _parse_args(args: List[str]) -> Tuple[Optional[str], int]:
    path: Optional[str] = None
    limit = DEFAULT_LIMIT
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in {"-n", "--limit"} and i + 1 < len(args):
            limit = int(args[i + 1])
            if limit < 1:
                raise ValueError("COUNT must be positive")
            i += 2
        elif path is None and not arg.startswith("-"):
            path = arg
            i += 1
        else:
            raise ValueError(f"Unexpected argument '{arg}'")
    return path, limit


def _handler(context: SlashCommandContext, args: List[str]) -> str:
    try:
        path, limit = _parse_args(args)
    except ValueError as exc:
        return f"[log] {exc}\n{USAGE}"

    try:
        commits = context.client().history(context.token(), path=path, limit=limit)
    except SyncError as exc:
        return f"[log] {exc.message}"
    if not commits:
        target = f" touching {path}" if path else ""
        return f"[log] No commits{target} on {context.settings.branch}."

    def _render(console: Console) -> None:
        title = f"History of {path}" if path else f"History of {context.settings.branch}"
        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Commit", style="yellow", no_wrap=True)
        table.add_column("Date", no_wrap=True)
        table.add_column("Author", no_wrap=True)
        table.add_column("Message", overflow="fold")
        for commit in commits:
            summary = commit.message.splitlines()[0] if commit.message else ""
            table.add_row(commit.short_id, commit.date, commit.author, summary)
        console.print(table)

    return render_rich(_render)


COMMAND = SlashCommand(
    name="log",
    description="List recent commits, optionally for one path. Usage: /log [PATH] [-n COUNT]",
    handler=_handler,
    requires_repository=True,
)
