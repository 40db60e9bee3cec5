"""Logging helpers for blogsync."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

LOG_SUBPATH = Path("logs") / "blogsync.log"
STRUCTURED_LOG_SUBPATH = Path("logs") / "blogsync.jsonl"
MAX_BYTES = 5 * 1024 * 1024  # 5 MB per log segment
BACKUP_COUNT = 3
REPO_ROOT = Path(__file__).resolve().parent.parent
FALLBACK_ROOT = REPO_ROOT / ".blogsync_runtime"
TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Attributes passed through ``extra=`` that structured records keep.
CONTEXT_FIELDS = ("branch", "state", "commit", "attempt", "error_code")
QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with transaction context when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(
    home_dir: Path,
    level: Union[str, int] = logging.WARNING,
    structured: bool = True,
    structured_path: Optional[str] = None,
    console: bool = True,
) -> Path:
    """Configure the ``blogsync`` logger hierarchy.

    Calling it again replaces the previous handlers. When ``home_dir`` is not
    writable the files go under :data:`FALLBACK_ROOT` and a warning is logged.

    Args:
        home_dir: blogsync home directory; logs go under ``logs/``.
        level: Logging level (string name or int constant).
        structured: Whether to also write JSON lines.
        structured_path: Custom path for structured logs (relative to home_dir).
        console: Whether to echo records to stderr.

    Returns:
        Path to the primary (text) log file.
    """
    fallbacks: List[Tuple[Path, Path]] = []
    log_path = _writable_path(home_dir, LOG_SUBPATH, fallbacks)

    handlers: List[logging.Handler] = [_rotating(log_path, logging.Formatter(TEXT_FORMAT))]
    if console:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter(TEXT_FORMAT))
        handlers.append(stream)
    if structured:
        subpath = Path(structured_path) if structured_path else STRUCTURED_LOG_SUBPATH
        handlers.append(_rotating(_writable_path(home_dir, subpath, fallbacks), JSONFormatter()))

    logger = logging.getLogger("blogsync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(_level_number(level))
    for handler in handlers:
        logger.addHandler(handler)
    logger.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for wanted, used in fallbacks:
        logger.warning("Cannot write logs under %s; using %s instead", wanted.parent, used.parent)
    return log_path


def _rotating(path: Path, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setFormatter(formatter)
    return handler


def _level_number(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.WARNING


def _writable_path(home_dir: Path, subpath: Path, fallbacks: List[Tuple[Path, Path]]) -> Path:
    wanted = home_dir / subpath
    try:
        wanted.parent.mkdir(parents=True, exist_ok=True)
        return wanted
    except PermissionError:
        used = FALLBACK_ROOT / subpath
        used.parent.mkdir(parents=True, exist_ok=True)
        fallbacks.append((wanted, used))
        return used


__all__ = ["setup_logging", "JSONFormatter", "CONTEXT_FIELDS", "LOG_SUBPATH", "STRUCTURED_LOG_SUBPATH", "FALLBACK_ROOT"]
