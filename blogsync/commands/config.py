"""Slash command for inspecting configuration and editing home overrides."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple, Union

import yaml
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from ..configuration import (
    CONFIG_SCHEMA,
    ConfigurationBundle,
    Diagnostic,
    Option,
    SchemaCheck,
    Section,
    load_runtime_configuration,
)
from ..slash_commands import SlashCommand, SlashCommandContext, render_rich

YAML_FLAGS = {"--yaml", "-y", "yaml"}
CLI_OVERRIDE_FILENAME = "99-cli-overrides.yml"
USAGE = "[config] Usage: /config [--yaml] | /config KEY [VALUE] | /config unset KEY"


class ConfigMutationError(RuntimeError):
    """The override file could not be read or written."""


def _handler(context: SlashCommandContext, args: List[str]) -> str:
    if not args:
        return _render_view(context.config, show_yaml=False)
    if len(args) == 1 and args[0].lower() in YAML_FLAGS:
        return _render_view(context.config, show_yaml=True)

    if args[0] == "unset":
        if len(args) != 2:
            return USAGE
        return _unset(context, args[1])

    dotted = args[0].strip(".")
    try:
        entry = _schema_entry(dotted)
    except KeyError:
        return f"[config] Unknown key '{dotted}'. Run /config to list keys."

    if len(args) == 1:
        value = _lookup(context.config.merged, dotted.split("."))
        if value is None:
            return f"[config] {dotted} is not set."
        return f"[config] {dotted} = {_format_value(value)}"

    if isinstance(entry, Section):
        return f"[config] '{dotted}' is a section; setting nested mappings is not supported, set each key separately."
    return _set(context, dotted, entry, " ".join(args[1:]).strip())


def _schema_entry(dotted: str) -> Union[Section, Option]:
    entry: Union[Section, Option] = CONFIG_SCHEMA
    for part in dotted.split("."):
        if not isinstance(entry, Section) or part not in entry.entries:
            raise KeyError(dotted)
        entry = entry.entries[part]
    return entry


def _set(context: SlashCommandContext, dotted: str, option: Option, raw: str) -> str:
    if not raw:
        return "[config] value cannot be empty."
    try:
        value = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        return f"[config] could not parse value: {exc}"

    problems: List[Diagnostic] = []
    SchemaCheck(problems).check_option(value, option, f"config.{dotted}")
    if problems:
        return "\n".join(f"[config] Not saved: {diag.message}" for diag in problems)

    path = context.config.home_dir / "config" / CLI_OVERRIDE_FILENAME
    try:
        data = _read_overrides(path)
        cursor = data
        *parents, leaf = dotted.split(".")
        for part in parents:
            if not isinstance(cursor.get(part), dict):
                cursor[part] = {}
            cursor = cursor[part]
        cursor[leaf] = value
        _write_overrides(path, data)
    except ConfigMutationError as exc:
        return f"[config] {exc}"

    bundle = _reload(context)
    return (
        f"[config] {dotted} = {_format_value(_lookup(bundle.merged, dotted.split('.')))} "
        f"(saved to {_relative(path, bundle.home_dir)})"
    )


def _unset(context: SlashCommandContext, dotted: str) -> str:
    path = context.config.home_dir / "config" / CLI_OVERRIDE_FILENAME
    parts = dotted.strip(".").split(".")
    try:
        data = _read_overrides(path)
        if not _remove(data, parts):
            return f"[config] {dotted} is not set in {CLI_OVERRIDE_FILENAME}."
        _write_overrides(path, data)
    except ConfigMutationError as exc:
        return f"[config] {exc}"

    bundle = _reload(context)
    return f"[config] {dotted} reset to {_format_value(_lookup(bundle.merged, parts))}"


def _remove(data: Dict[str, Any], parts: List[str]) -> bool:
    head, rest = parts[0], parts[1:]
    if head not in data:
        return False
    if rest:
        child = data[head]
        if not isinstance(child, dict) or not _remove(child, rest):
            return False
        if child:
            return True
    del data[head]
    return True


def _read_overrides(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigMutationError(f"cannot read {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigMutationError(f"override file '{path}' must contain a mapping.")
    return data


def _write_overrides(path: Path, data: Dict[str, Any]) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(data, sort_keys=True, default_flow_style=False), encoding="utf-8")
    except OSError as exc:
        raise ConfigMutationError(f"cannot write {path}: {exc}") from exc


def _reload(context: SlashCommandContext) -> ConfigurationBundle:
    bundle = load_runtime_configuration(context.config.home_dir)
    bundle.log_path = context.config.log_path
    context.router.config = bundle
    context.config = bundle
    return bundle


def _flatten(data: Dict[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    for key in sorted(data):
        dotted = f"{prefix}{key}"
        value = data[key]
        if isinstance(value, dict) and value:
            yield from _flatten(value, f"{dotted}.")
        else:
            yield dotted, value


def _source_of(bundle: ConfigurationBundle, dotted: str) -> str:
    parts = dotted.split(".")
    if _lookup(bundle.home_overrides, parts) is not None:
        return "home"
    if _lookup(bundle.repo_defaults, parts) is not None:
        return "repo"
    return "default"


def _render_view(bundle: ConfigurationBundle, show_yaml: bool) -> str:
    files = Table(show_header=True, header_style="bold magenta", box=box.SIMPLE, pad_edge=False)
    files.add_column("Order", justify="right", style="magenta", no_wrap=True)
    files.add_column("File", overflow="fold", ratio=1)
    for index, path in enumerate(bundle.files_loaded, start=1):
        files.add_row(str(index), str(path))
    if not bundle.files_loaded:
        files.add_row("-", "[dim]No config files loaded[/dim]")

    values = Table(show_header=True, header_style="bold cyan", box=box.SIMPLE, pad_edge=False)
    values.add_column("Key", style="bold", no_wrap=True)
    values.add_column("Value", overflow="fold", ratio=1)
    values.add_column("From", style="dim", no_wrap=True)
    for dotted, value in _flatten(bundle.merged or {}):
        values.add_row(dotted, _format_value(value), _source_of(bundle, dotted))

    def _render(console: Console) -> None:
        console.print(Panel(files, title="Loaded Config Files", border_style="magenta", padding=(0, 1)))
        if show_yaml:
            text = yaml.safe_dump(bundle.merged or {}, sort_keys=True, default_flow_style=False).strip()
            syntax = Syntax(text or "# empty configuration", "yaml", word_wrap=True)
            console.print(Panel(syntax, title="Merged Configuration (YAML)", border_style="cyan", padding=(0, 1)))
        else:
            console.print(Panel(values, title="Merged Configuration", border_style="cyan", padding=(0, 1)))
            console.print("[dim]Tip: '/config KEY VALUE' saves to the home overrides; '/config --yaml' shows YAML.[/dim]")

    return render_rich(_render)


def _lookup(data: Any, parts: List[str]) -> Any:
    for part in parts:
        if not isinstance(data, dict) or part not in data:
            return None
        data = data[part]
    return data


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, list):
        return "[" + ", ".join(_format_value(item) for item in value) + "]"
    return repr(value)


def _relative(path: Path, home_dir: Path) -> str:
    try:
        return str(path.relative_to(home_dir))
    except ValueError:
        return str(path)


COMMAND = SlashCommand(
    name="config",
    description="Show configuration, or get, set, or unset a key. Usage: /config [KEY [VALUE]] [--yaml]",
    handler=_handler,
)
