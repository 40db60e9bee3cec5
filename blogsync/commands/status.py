"""Slash command for runtime and repository status."""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..slash_commands import SlashCommand, SlashCommandContext, render_rich
from ..sync import SyncError

SECTION_ALIASES: Dict[str, Sequence[str]] = {
    "info": ("info", "summary"),
    "branch": ("branch", "head", "repo"),
    "diagnostics": ("diagnostics", "diag", "diags"),
}
DEFAULT_MAX_ROWS = 5


def _resolve_sections(args: Iterable[str]) -> Tuple[List[str], bool]:
    """Return sections to render and whether all rows should be shown."""

    normalized = [arg.strip().lower() for arg in args]
    show_all = any(arg in {"--all", "-a", "all"} for arg in normalized)

    requested: List[str] = []
    for section, aliases in SECTION_ALIASES.items():
        if any(arg in aliases for arg in normalized):
            requested.append(section)

    if not requested:
        requested = list(SECTION_ALIASES.keys())

    return requested, show_all


def _handler(context: SlashCommandContext, args: List[str]) -> str:
    config = context.config
    settings = context.settings
    sections, show_all = _resolve_sections(args)

    def _render_summary(console: Console) -> None:
        info = Table.grid(padding=(0, 1))
        info.add_column("Key", style="bold", no_wrap=True)
        info.add_column("Value", overflow="fold")
        info.add_row("Home", str(config.home_dir))
        info.add_row("Status", config.status)
        info.add_row("Config files", str(len(config.files_loaded)))
        info.add_row("Log path", str(config.log_path or "(not initialized)"))
        info.add_row("Repository", settings.slug if settings.configured else "(not configured)")
        info.add_row("Branch", settings.branch)
        info.add_row("Posts", settings.layout.blog_dir)
        info.add_row("Images", settings.layout.images_dir)
        info.add_row("Uploads", f"{settings.upload_concurrency} parallel")
        info.add_row("Retries", str(settings.retry.max_attempts))

        console.print(
            Panel(
                info,
                title="Runtime Status",
                border_style="green",
                padding=(0, 1),
            )
        )

    def _render_branch(console: Console) -> None:
        if not settings.configured:
            console.print(Panel("[yellow]Repository not configured.", title="Branch", border_style="blue"))
            return
        try:
            status = context.client().get_status(context.token())
        except SyncError as exc:
            console.print(Panel(f"[red]{exc.message}", title="Branch", border_style="red"))
            return

        head = Table.grid(padding=(0, 1))
        head.add_column("Key", style="bold", no_wrap=True)
        head.add_column("Value", overflow="fold")
        head.add_row("Branch", status["branch"])
        head.add_row("Commit", status["commit"])
        head.add_row("Tree", status["tree"])
        console.print(Panel(head, title=f"Branch ({status['repository']})", border_style="blue", padding=(0, 1)))

    def _render_diagnostics(console: Console) -> None:
        if not config.diagnostics:
            console.print(Panel("[green]No diagnostics reported.", title="Diagnostics", border_style="red"))
            return

        diag_table = Table(
            show_header=True,
            header_style="bold red",
            box=box.SIMPLE,
            pad_edge=False,
        )
        diag_table.add_column("Lvl", style="red", no_wrap=True)
        diag_table.add_column("Message", overflow="fold", ratio=2)
        diag_table.add_column("Source", overflow="fold", ratio=2)

        max_rows = len(config.diagnostics) if show_all else DEFAULT_MAX_ROWS
        rows = [
            (diag.level.upper(), diag.message, str(diag.source or config.home_dir))
            for diag in config.diagnostics
        ]
        for row in rows[:max_rows]:
            diag_table.add_row(*row)

        console.print(
            Panel(
                diag_table,
                title="Diagnostics",
                border_style="red",
                padding=(0, 1),
            )
        )
        if len(rows) > max_rows:
            console.print(
                f"\n[dim]Showing {max_rows}/{len(rows)}. "
                "Use '/status diagnostics --all' for the full list.[/dim]"
            )

    renderers = {
        "info": _render_summary,
        "branch": _render_branch,
        "diagnostics": _render_diagnostics,
    }

    def _render(console: Console) -> None:
        for section in sections:
            renderers[section](console)

    return render_rich(_render)


COMMAND = SlashCommand(
    name="status",
    description="Show configuration, branch head, and diagnostics.",
    handler=_handler,
)
