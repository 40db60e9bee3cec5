"""Slash command for viewing and editing the site configuration."""

from __future__ import annotations

from pathlib import Path
from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..slash_commands import SlashCommand, SlashCommandContext, describe_result, render_rich
from ..sync import AssetTarget, PendingAsset, SiteSettings, SyncError

USAGE = (
    "[site] Usage: /site [show] | title TEXT | description TEXT | author NAME | "
    "favicon FILE | avatar FILE | social add URL [ICON] | social remove N | "
    "social move N up|down | social icon N ICON"
)
TEXT_FIELDS = {
    "title": SiteSettings.set_title,
    "description": SiteSettings.set_description,
    "author": SiteSettings.set_author,
}
ASSET_FIELDS = {
    "favicon": AssetTarget.FAVICON,
    "avatar": AssetTarget.AVATAR,
}


def _render_settings(settings: SiteSettings) -> str:
    def _render(console: Console) -> None:
        info = Table.grid(padding=(0, 1))
        info.add_column("Key", style="bold", no_wrap=True)
        info.add_column("Value", overflow="fold")
        info.add_row("Title", settings.title or "-")
        info.add_row("Description", settings.description or "-")
        info.add_row("Favicon", settings.favicon or "-")
        info.add_row("Author", settings.author or "-")
        info.add_row("Avatar", settings.avatar or "-")
        console.print(Panel(info, title="Site", border_style="green", padding=(0, 1)))

        if settings.social:
            social = Table(show_header=True, header_style="bold cyan")
            social.add_column("#", no_wrap=True)
            social.add_column("Title")
            social.add_column("Icon", no_wrap=True)
            social.add_column("Link", overflow="fold")
            for index, link in enumerate(settings.social):
                social.add_row(str(index), link.title, link.svg, link.href)
            console.print(social)

    return render_rich(_render)


def _apply_social(settings: SiteSettings, args: List[str]) -> None:
    if not args:
        raise ValueError("Missing social action")
    action, rest = args[0].lower(), args[1:]
    if action == "add" and rest:
        settings.add_social_link(rest[0], *rest[1:2])
    elif action == "remove" and len(rest) == 1:
        settings.remove_social_link(int(rest[0]))
    elif action == "move" and len(rest) == 2:
        settings.move_social_link(int(rest[0]), rest[1].lower())
    elif action == "icon" and len(rest) == 2:
        settings.set_social_icon(int(rest[0]), rest[1])
    else:
        raise ValueError(f"Unknown social action '{' '.join(args)}'")


def _handler(context: SlashCommandContext, args: List[str]) -> str:
    client = context.client()
    token = context.token()
    try:
        settings = client.load_site_settings(token)
    except (SyncError, ValueError) as exc:
        message = exc.message if isinstance(exc, SyncError) else str(exc)
        return f"[site] Cannot load site configuration: {message}"

    if not args or args[0].lower() == "show":
        return _render_settings(settings)

    field_name, rest = args[0].lower(), args[1:]
    assets: List[PendingAsset] = []
    try:
        if field_name in TEXT_FIELDS and rest:
            TEXT_FIELDS[field_name](settings, " ".join(rest))
        elif field_name in ASSET_FIELDS and len(rest) == 1:
            source = Path(rest[0]).expanduser()
            if not source.is_file():
                return f"[site] File not found: {source}"
            assets.append(PendingAsset(ASSET_FIELDS[field_name], source.read_bytes()))
        elif field_name == "social":
            _apply_social(settings, rest)
        else:
            return USAGE
    except (ValueError, IndexError) as exc:
        return f"[site] {exc}"

    result = client.update_site(token, settings, assets)
    return describe_result("site", result)


COMMAND = SlashCommand(
    name="site",
    description="Show or edit the site title, author, icons, and social links. Usage: /site [field value]",
    handler=_handler,
    requires_repository=True,
)
