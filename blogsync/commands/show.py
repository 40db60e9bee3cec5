"""Slash command for reading a post back from the branch."""

from __future__ import annotations

from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..slash_commands import SlashCommand, SlashCommandContext, render_rich
from ..sync import SyncError

PREVIEW_LINES = 12


def _handler(context: SlashCommandContext, args: List[str]) -> str:
    if len(args) != 1:
        return "[show] Usage: /show SLUG"
    slug = args[0]

    try:
        post = context.client().load_post(context.token(), slug)
    except SyncError as exc:
        return f"[show] {exc.message}"
    if post is None:
        return f"[show] No post named '{slug}' on branch {context.settings.branch}."

    def _render(console: Console) -> None:
        meta = Table.grid(padding=(0, 1))
        meta.add_column("Key", style="bold", no_wrap=True)
        meta.add_column("Value", overflow="fold")
        meta.add_row("Path", post.path)
        meta.add_row("Blob", (post.blob_id or "")[:12])
        for key, value in post.front_matter.items():
            if isinstance(value, list):
                value = ", ".join(str(item) for item in value)
            meta.add_row(key, str(value))
        console.print(Panel(meta, title=f"Post '{post.slug}'", border_style="cyan", padding=(0, 1)))

        lines = post.body.strip().splitlines()
        preview = "\n".join(lines[:PREVIEW_LINES])
        if len(lines) > PREVIEW_LINES:
            preview += f"\n[dim]... {len(lines) - PREVIEW_LINES} more line(s)[/dim]"
        console.print(Panel(preview or "[dim](empty)[/dim]", title="Body", border_style="blue"))

    return render_rich(_render)


COMMAND = SlashCommand(
    name="show",
    description="Show a post's front matter and body. Usage: /show SLUG",
    handler=_handler,
    requires_repository=True,
)
