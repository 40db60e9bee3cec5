"""Shared slash command registry and helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from io import StringIO
import shutil
from typing import Any, Callable, Dict, List, Optional, Sequence

from rich.console import Console
from rich.table import Table

from .configuration import ConfigurationBundle
from .sync import StaleBranch, SyncClient, SyncSettings, TransactionResult, Unauthorized

SlashCommandHandler = Callable[["SlashCommandContext", List[str]], str]
ClientFactory = Callable[[SyncSettings], SyncClient]


@dataclass
class SlashCommandContext:
    """Context passed into each slash command handler."""

    config: ConfigurationBundle
    router: "CommandRouter"
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def settings(self) -> SyncSettings:
        return SyncSettings.from_config(self.config.merged)

    def client(self) -> SyncClient:
        return self.router.client_for(self.settings)

    def token(self) -> str:
        explicit = self.metadata.get("token")
        if explicit:
            return str(explicit)
        return self.settings.resolve_token()


@dataclass
class SlashCommand:
    """Metadata about a slash command."""

    name: str
    description: str
    handler: SlashCommandHandler
    requires_ready: bool = False
    requires_repository: bool = False


class CommandRouter:
    """Registry + dispatcher for slash commands."""

    def __init__(
        self,
        config: ConfigurationBundle,
        metadata: Optional[Dict[str, Any]] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.config = config
        self._commands: Dict[str, SlashCommand] = {}
        self.metadata = metadata or {}
        self._client_factory = client_factory or SyncClient

    def register(self, command: SlashCommand) -> None:
        self._commands[command.name.lower()] = command

    def handle(self, command_name: str, args: List[str]) -> str:
        command = self._commands.get(command_name.lower())
        if command is None:
            return f"[router] Unknown command '/{command_name}'. Try /help."
        if command.requires_ready and self.config.status != "ready":
            return (
                f"[router] '/{command_name}' requires a ready configuration "
                f"(current status: {self.config.status})."
            )
        if command.requires_repository and not SyncSettings.from_config(self.config.merged).configured:
            return (
                f"[router] '/{command_name}' needs repository.owner and repository.name "
                "set in configuration."
            )
        context = SlashCommandContext(
            config=self.config,
            router=self,
            metadata=self.metadata,
        )
        return command.handler(context, args)

    def client_for(self, settings: SyncSettings) -> SyncClient:
        return self._client_factory(settings)

    @property
    def command_names(self) -> Sequence[str]:
        return sorted(self._commands.keys())

    def commands(self) -> Sequence[SlashCommand]:
        return [self._commands[name] for name in self.command_names]

    def get(self, command_name: str) -> Optional[SlashCommand]:
        return self._commands.get(command_name.lower())


def render_help_table(commands: Sequence[SlashCommand]) -> str:
    """Render a help table listing slash commands."""

    def _render(console: Console) -> None:
        table = Table(title="Slash Commands", show_header=True, header_style="bold cyan")
        table.add_column("Command", style="green", no_wrap=True)
        table.add_column("Description")
        for cmd in commands:
            table.add_row(f"/{cmd.name}", cmd.description)
        console.print(table)

    return render_rich(_render)


def describe_result(tag: str, result: TransactionResult) -> str:
    """One-paragraph summary of a transaction outcome."""

    if result.nothing_to_do:
        return f"[{tag}] Nothing to do: no matching files on the branch."
    if result.success:
        lines = [f"[{tag}] Committed {result.commit_id[:7]}: {result.message}"]
        lines.extend(f"  {path}" for path in result.applied_paths)
        return "\n".join(lines)

    error = result.error
    detail = error.message.rstrip(".") if error else "unknown error"
    stage = result.failed_at.value.replace("_", " ") if result.failed_at else "startup"
    hint = ""
    if isinstance(error, StaleBranch):
        hint = " The branch changed while saving; run the command again."
    elif isinstance(error, Unauthorized):
        hint = " Check the token in the configured environment variable."
    return f"[{tag}] Failed while {stage}: {detail}.{hint}"


def render_rich(render_fn: Callable[[Console], None]) -> str:
    """Render a Rich layout to an ANSI string without printing live."""

    terminal_size = shutil.get_terminal_size(fallback=(80, 24))
    # Clamp to a reasonable minimum so Rich does not choke on ultra-small widths.
    width = max(20, terminal_size.columns)
    height = max(10, terminal_size.lines)

    console = Console(
        record=True,
        force_terminal=True,
        color_system="auto",
        width=width,
        height=height,
        file=StringIO(),
    )
    render_fn(console)
    return console.export_text(clear=False, styles=True)


__all__ = [
    "SlashCommand",
    "SlashCommandContext",
    "CommandRouter",
    "describe_result",
    "render_help_table",
    "render_rich",
]
