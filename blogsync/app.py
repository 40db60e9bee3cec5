# blogsync/app.py
"""
Interactive entry point for blogsync.

Runs a slash-command REPL against the configured repository, executes a single
command passed on the command line, or serves the HTTP API in the foreground.
"""

from __future__ import annotations

import logging
import os
import shlex
import sys
from pathlib import Path
try:
    import readline
except ImportError:  # pragma: no cover
    readline = None
from shutil import get_terminal_size
from typing import List, Optional, Sequence

from .api import BlogsyncAPIServer
from .commands import COMMANDS
from .commands.api import SERVER_KEY
from .configuration import (
    ConfigurationBundle,
    Diagnostic,
    load_runtime_configuration,
)
from .logging_utils import setup_logging
from .slash_commands import CommandRouter
from .sync import SyncSettings

BLOGSYNC_MODE = os.environ.get("BLOGSYNC_MODE", "local")
REPO_ROOT = Path(__file__).resolve().parent.parent
logger = logging.getLogger("blogsync")
TRUE_STRINGS = {"1", "true", "yes", "on"}
FALSE_STRINGS = {"0", "false", "no", "off"}


def _log_path_within_home(log_path: Path, home_dir: Path) -> bool:
    try:
        log_path.relative_to(home_dir)
        return True
    except ValueError:
        return False


def print_banner(config: ConfigurationBundle) -> None:
    """Print the runtime header so operators know which repository is targeted."""

    terminal_width = get_terminal_size(fallback=(80, 24)).columns
    settings = SyncSettings.from_config(config.merged)
    target = f"{settings.slug}@{settings.branch}" if settings.configured else "no repository configured"

    def _wide_banner() -> str:
        inner_width = 78

        def _line(content: str = "") -> str:
            return f"║{content.center(inner_width)}║"

        lines = [
            "╔" + "═" * inner_width + "╗",
            _line(),
            _line("BLOGSYNC"),
            _line(target),
            _line(),
            "╚" + "═" * inner_width + "╝",
        ]
        return "\n".join(lines)

    banner = _wide_banner() if terminal_width >= 80 else f"blogsync :: {target}"

    print(banner)
    print()


def _parse_env_flag(value: str, *, default: bool = True) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_STRINGS:
        return True
    if normalized in FALSE_STRINGS:
        return False
    return default


def _resolve_ui_verbose(config_bundle: ConfigurationBundle) -> bool:
    """Resolve whether the CLI should display the banner or a quiet view."""

    env_value = os.environ.get("BLOGSYNC_UI_VERBOSE")
    if env_value is not None:
        return _parse_env_flag(env_value)

    ui_cfg = (config_bundle.merged or {}).get("ui") or {}
    verbose_setting = ui_cfg.get("verbose")
    if verbose_setting is None:
        return True
    return bool(verbose_setting)


def build_router(config: ConfigurationBundle) -> CommandRouter:
    """Create the router with every slash command registered."""

    router = CommandRouter(
        config,
        metadata={
            "mode": BLOGSYNC_MODE,
            "repo_root": str(REPO_ROOT),
        },
    )
    for command in COMMANDS:
        router.register(command)
    return router


def emit_configuration_report(config: ConfigurationBundle) -> None:
    """Print diagnostics so operators can correct issues quickly."""

    if not config.diagnostics:
        print(
            f"[config] Loaded {len(config.files_loaded)} file(s) "
            f"from repo and home config directories."
        )
        return

    print("[config] Diagnostics:")
    for diag in config.diagnostics:
        prefix = diag.source or config.home_dir
        print(f"  - ({diag.level.upper()}) {diag.message} [{prefix}]")


def configure_autocomplete(router: CommandRouter) -> None:
    """Enable readline tab completion for slash commands."""

    if readline is None:
        return

    commands = list(router.command_names)

    def completer(text: str, state: int):
        buffer = readline.get_line_buffer()
        if not buffer.startswith("/"):
            return None
        fragment = text[1:] if text.startswith("/") else text
        matches = [f"/{cmd}" for cmd in commands if cmd.startswith(fragment)]
        if state < len(matches):
            return matches[state]
        return None

    readline.set_completer(completer)
    readline.parse_and_bind("tab: complete")
    readline.set_completer_delims(" \t")


def execute_cli_command(
    command_line: str,
    router: CommandRouter,
    *,
    suppress_output: bool = False,
) -> str:
    """Execute one slash command line (without the leading '/') and print the output."""

    stripped = command_line.strip()
    if not stripped:
        return ""

    try:
        parts = shlex.split(stripped)
    except ValueError as exc:
        result = f"[router] Cannot parse command: {exc}"
    else:
        command, args = parts[0], parts[1:]
        result = router.handle(command, args)
    if not suppress_output:
        print(result)

    logger.info("Executed CLI command: %s", stripped)
    return result


def initialize(config_bundle: ConfigurationBundle) -> Path:
    """Set up logging from configuration and record fallback diagnostics."""

    logging_cfg = (config_bundle.merged.get("logging", {}) or {}) if config_bundle.merged else {}
    env_level = os.environ.get("BLOGSYNC_LOG_LEVEL")
    log_level_name = (env_level or logging_cfg.get("level") or "WARNING").upper()
    log_path = setup_logging(
        config_bundle.home_dir,
        log_level_name,
        structured=bool(logging_cfg.get("structured", True)),
        console=False,
    )
    config_bundle.log_path = log_path
    if not _log_path_within_home(log_path, config_bundle.home_dir):
        config_bundle.diagnostics.append(
            Diagnostic(
                level="warning",
                message=(
                    "Home log directory is not writable; "
                    f"logging to fallback path '{log_path}'."
                ),
                source=log_path,
            )
        )
    logger.info("Logging initialized at %s", log_path)
    return log_path


def serve(config_bundle: ConfigurationBundle) -> int:
    """Run the HTTP API in the foreground until interrupted."""

    server = BlogsyncAPIServer(config_bundle=config_bundle)
    print(f"[api] Serving on http://{server.host}:{server.port} (Ctrl-C to stop)")
    return 0 if server.start(blocking=True) else 1


def run_repl(router: CommandRouter, config_bundle: ConfigurationBundle, ui_verbose: bool) -> None:
    """Read slash commands until the operator exits."""

    while True:
        try:
            raw_line = input("> ")
        except (EOFError, KeyboardInterrupt):
            print("\n[Exiting blogsync]")
            break

        if raw_line == "\x0c":  # Ctrl-L (form feed)
            print("\033[2J\033[H", end="")
            if ui_verbose:
                print_banner(config_bundle)
            continue

        line = raw_line.strip()
        if not line:
            continue
        if line.lower() in {"quit", "exit", "/quit", "/exit"}:
            print("[Goodbye]")
            break
        if not line.startswith("/"):
            print("[blogsync] Commands start with '/'. Try /help.")
            continue

        execute_cli_command(line[1:], router)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the ``blogsync`` console script."""

    args: List[str] = list(sys.argv[1:] if argv is None else argv)
    config_bundle = load_runtime_configuration()
    initialize(config_bundle)

    if args and args[0] == "serve":
        emit_configuration_report(config_bundle)
        return serve(config_bundle)

    router = build_router(config_bundle)
    if args:
        command_line = " ".join(shlex.quote(arg) for arg in args)
        execute_cli_command(command_line.lstrip("/"), router)
        return 0

    ui_verbose = _resolve_ui_verbose(config_bundle)
    if ui_verbose:
        print_banner(config_bundle)
    else:
        print(f"[blogsync] {BLOGSYNC_MODE} ready (quiet mode)")
        print()
    emit_configuration_report(config_bundle)
    logger.info("UI verbosity: %s", "enabled" if ui_verbose else "disabled")
    configure_autocomplete(router)

    api_cfg = config_bundle.merged.get("api", {}) or {}
    if api_cfg.get("enabled"):
        server = BlogsyncAPIServer(config_bundle=config_bundle, client_factory=router.client_for)
        router.metadata[SERVER_KEY] = server
        if server.start(blocking=False):
            print(f"[api] Server started at http://{server.host}:{server.port}")
        else:
            print(f"[api] Failed to start server (state: {server.state.value}).")

    try:
        run_repl(router, config_bundle, ui_verbose)
    finally:
        server = router.metadata.get(SERVER_KEY)
        if server is not None and server.state.value == "running":
            server.stop()
    return 0
