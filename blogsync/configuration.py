"""Layered configuration loading for blogsync.

Configuration comes from two YAML layers: the defaults shipped in the
repository's ``config/`` directory and the overrides under
``$BLOGSYNC_HOME/config``. Files inside a layer merge in name order, layers
merge repo first, and the result is checked against :data:`CONFIG_SCHEMA`.
Problems never raise; they become :class:`Diagnostic` entries and the
offending value falls back to its default.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Mapping, MutableMapping, Optional, Tuple, Union

import yaml

REPO_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = REPO_ROOT / "config"
DEFAULT_HOME = "~/.blogsync"
HOME_ENV = "BLOGSYNC_HOME"

DiagnosticLevel = Literal["info", "warning", "error"]
ConfigurationStatus = Literal["ready", "missing", "invalid"]

Number = (int, float)


@dataclass(frozen=True)
class Option:
    """A scalar or list setting with its default."""

    kind: Any
    default: Any = None
    choices: Tuple[Any, ...] = ()
    item_kind: Optional[type] = None
    factory: Optional[Callable[[], Any]] = None

    def fallback(self) -> Any:
        if self.factory is not None:
            return self.factory()
        return deepcopy(self.default)

    @property
    def kind_name(self) -> str:
        if self.kind is Number:
            return "number"
        return self.kind.__name__


@dataclass(frozen=True)
class Section:
    """A mapping of named options and nested sections."""

    entries: Mapping[str, Union["Section", Option]]


CONFIG_SCHEMA = Section({
    "runtime": Section({
        "name": Option(str, "blogsync"),
    }),
    "logging": Section({
        "level": Option(str, "INFO"),
        "structured": Option(bool, True),
    }),
    "ui": Section({
        "verbose": Option(bool, True),
    }),
    "repository": Section({
        "owner": Option(str, ""),
        "name": Option(str, ""),
        "branch": Option(str, "main"),
        "api_url": Option(str, "https://api.github.com"),
        "token_env": Option(str, "GITHUB_TOKEN"),
        "timeout": Option(Number, 30),
    }),
    "content": Section({
        "blog_dir": Option(str, "content/blog"),
        "images_dir": Option(str, "public/images"),
        "public_dir": Option(str, "public"),
        "config_file": Option(str, "mahiro.config.yaml"),
        "default_format": Option(str, "md", choices=("md", "mdx")),
    }),
    "sync": Section({
        "upload_concurrency": Option(int, 4),
        "retry": Section({
            "max_attempts": Option(int, 3),
            "backoff": Option(Number, 0.5),
            "multiplier": Option(Number, 2.0),
            "retry_rate_limited": Option(bool, False),
            "max_retry_after": Option(Number, 60),
        }),
    }),
    "api": Section({
        "enabled": Option(bool, False),
        "host": Option(str, "127.0.0.1"),
        "port": Option(int, 8000),
        "cors_origins": Option(list, item_kind=str, factory=list),
    }),
})


@dataclass
class Diagnostic:
    """Represents a configuration validation or loading issue."""

    level: DiagnosticLevel
    message: str
    source: Optional[Path] = None


@dataclass
class ConfigurationBundle:
    """All configuration data blogsync needs at runtime."""

    home_dir: Path
    status: ConfigurationStatus
    merged: Dict[str, Any] = field(default_factory=dict)
    repo_defaults: Dict[str, Any] = field(default_factory=dict)
    home_overrides: Dict[str, Any] = field(default_factory=dict)
    files_loaded: List[Path] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    log_path: Optional[Path] = None

    @property
    def has_errors(self) -> bool:
        return any(diag.level == "error" for diag in self.diagnostics)


def resolve_home_dir(
    env: Optional[Mapping[str, str]] = None,
    default: str = DEFAULT_HOME,
) -> Path:
    """Resolve the blogsync home directory from the environment."""

    source = env or os.environ
    return Path(source.get(HOME_ENV, default)).expanduser()


def load_runtime_configuration(home_dir: Optional[Path] = None) -> ConfigurationBundle:
    """Load repository defaults, apply home overrides, and validate."""

    home = home_dir or resolve_home_dir()
    bundle = ConfigurationBundle(home_dir=home, status="ready")

    bundle.repo_defaults = _read_layer(DEFAULT_CONFIG_DIR, "repo defaults", bundle)

    if not home.exists():
        bundle.diagnostics.append(Diagnostic("error", f"Home directory '{home}' does not exist."))
        bundle.status = "missing"
    elif not home.is_dir():
        bundle.diagnostics.append(Diagnostic("error", f"Home path '{home}' is not a directory."))
        bundle.status = "invalid"
    else:
        bundle.home_overrides = _read_layer(home / "config", "home overrides", bundle)

    merged = deepcopy(bundle.repo_defaults)
    merge_into(merged, bundle.home_overrides)
    SchemaCheck(bundle.diagnostics).apply(merged, CONFIG_SCHEMA, "config")
    bundle.merged = merged

    if bundle.status == "ready" and bundle.has_errors:
        bundle.status = "invalid"
    return bundle


def _read_layer(directory: Path, label: str, bundle: ConfigurationBundle) -> Dict[str, Any]:
    """Merge every YAML file of one layer, recording loaded files on ``bundle``."""

    layer: Dict[str, Any] = {}
    if not directory.is_dir():
        if directory.exists():
            bundle.diagnostics.append(
                Diagnostic("error", f"Configuration path '{directory}' ({label}) is not a directory.", directory)
            )
        else:
            bundle.diagnostics.append(
                Diagnostic("warning", f"No configuration directory found at '{directory}' ({label}).", directory)
            )
        return layer

    loaded = 0
    for path in sorted(directory.glob("*.yml")) + sorted(directory.glob("*.yaml")):
        try:
            content = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            bundle.diagnostics.append(Diagnostic("error", f"Failed to parse '{path}': {exc}", path))
            continue
        if content is not None and not isinstance(content, MutableMapping):
            bundle.diagnostics.append(
                Diagnostic("warning", f"Ignoring '{path}' because it does not contain a mapping.", path)
            )
            continue
        merge_into(layer, content or {})
        bundle.files_loaded.append(path)
        loaded += 1

    if not loaded:
        bundle.diagnostics.append(Diagnostic("info", f"No YAML files found under '{directory}' ({label}).", directory))
    return layer


def merge_into(dest: MutableMapping[str, Any], source: Mapping[str, Any]) -> None:
    """Recursively merge ``source`` into ``dest``; nested mappings merge, anything else replaces."""

    for key, value in source.items():
        current = dest.get(key)
        if isinstance(current, MutableMapping) and isinstance(value, Mapping):
            merge_into(current, value)
        else:
            dest[key] = deepcopy(value)


class SchemaCheck:
    """Validates a merged mapping in place, filling defaults and repairing bad values."""

    def __init__(self, diagnostics: List[Diagnostic]):
        self.diagnostics = diagnostics

    def _error(self, message: str) -> None:
        self.diagnostics.append(Diagnostic("error", message))

    def apply(self, target: Any, section: Section, path: str) -> None:
        if not isinstance(target, dict):
            self._error(f"Configuration section '{path}' must be a mapping.")
            return

        for key in target:
            if key not in section.entries:
                self.diagnostics.append(Diagnostic("warning", f"Unknown configuration key '{path}.{key}'."))

        for key, entry in section.entries.items():
            child = f"{path}.{key}"
            if isinstance(entry, Section):
                if key in target and not isinstance(target[key], dict):
                    self._error(f"'{child}' must be a mapping.")
                    target[key] = {}
                self.apply(target.setdefault(key, {}), entry, child)
            elif key not in target:
                target[key] = entry.fallback()
            else:
                target[key] = self.check_option(target[key], entry, child)

    def check_option(self, value: Any, option: Option, path: str) -> Any:
        if option.kind is list:
            if not isinstance(value, list):
                self._error(f"'{path}' must be a list.")
                return option.fallback()
            if option.item_kind is None:
                return value
            kept = []
            for index, item in enumerate(value):
                if isinstance(item, option.item_kind):
                    kept.append(item)
                else:
                    self._error(f"'{path}[{index}]' must be of type {option.item_kind.__name__}.")
            return kept

        # bool is an int subclass; only bool options accept it.
        if not isinstance(value, option.kind) or (isinstance(value, bool) and option.kind is not bool):
            self._error(f"'{path}' must be of type {option.kind_name}.")
            return option.fallback()
        if option.choices and value not in option.choices:
            self._error(f"'{path}' must be one of {', '.join(str(choice) for choice in option.choices)}.")
            return option.fallback()
        return value


__all__ = [
    "CONFIG_SCHEMA",
    "ConfigurationBundle",
    "ConfigurationStatus",
    "DEFAULT_CONFIG_DIR",
    "Diagnostic",
    "Option",
    "SchemaCheck",
    "Section",
    "load_runtime_configuration",
    "merge_into",
    "resolve_home_dir",
]
