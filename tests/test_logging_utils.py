"""Tests for logging utilities."""

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from blogsync import logging_utils


def _reset_logger() -> logging.Logger:
    logger = logging.getLogger("blogsync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    return logger


def test_setup_logging_creates_rotating_files(tmp_path: Path):
    logger = _reset_logger()
    log_path = logging_utils.setup_logging(tmp_path, level="INFO", console=False)

    assert log_path == tmp_path / "logs" / "blogsync.log"
    assert log_path.exists()

    file_handlers = [
        handler for handler in logger.handlers if isinstance(handler, RotatingFileHandler)
    ]
    assert [Path(h.baseFilename).name for h in file_handlers] == ["blogsync.log", "blogsync.jsonl"]
    assert logger.level == logging.INFO
    assert logger.propagate is False


def test_setup_logging_is_idempotent(tmp_path: Path):
    logger = _reset_logger()
    logging_utils.setup_logging(tmp_path, level="INFO")
    handler_count = len(logger.handlers)

    logging_utils.setup_logging(tmp_path, level="INFO")
    assert len(logger.handlers) == handler_count


def test_structured_log_writes_json_lines(tmp_path: Path):
    _reset_logger()
    logging_utils.setup_logging(tmp_path, level="DEBUG", console=False)

    logging.getLogger("blogsync.sync.orchestrator").info("Committed %d change(s)", 2)
    for handler in logging.getLogger("blogsync").handlers:
        handler.flush()

    lines = (tmp_path / "logs" / "blogsync.jsonl").read_text(encoding="utf-8").splitlines()
    entry = json.loads(lines[-1])
    assert entry["logger"] == "blogsync.sync.orchestrator"
    assert entry["level"] == "INFO"
    assert entry["message"] == "Committed 2 change(s)"


def test_structured_log_can_be_disabled(tmp_path: Path):
    logger = _reset_logger()
    logging_utils.setup_logging(tmp_path, structured=False, console=False)

    assert len(logger.handlers) == 1
    assert not (tmp_path / "logs" / "blogsync.jsonl").exists()


def test_unknown_level_name_falls_back_to_warning(tmp_path: Path):
    logger = _reset_logger()
    logging_utils.setup_logging(tmp_path, level="chatty", console=False)
    assert logger.level == logging.WARNING


def test_setup_logging_falls_back_when_permission_denied(tmp_path: Path, monkeypatch):
    _reset_logger()
    home_dir = tmp_path / "home"
    primary_parent = home_dir / "logs"
    original_mkdir = Path.mkdir

    def fake_mkdir(self, *args, **kwargs):
        if str(self).startswith(str(primary_parent)):
            raise PermissionError
        return original_mkdir(self, *args, **kwargs)

    monkeypatch.setattr(Path, "mkdir", fake_mkdir)
    fallback_root = tmp_path / "fallback"
    monkeypatch.setattr(logging_utils, "FALLBACK_ROOT", fallback_root)

    log_path = logging_utils.setup_logging(home_dir, level="INFO", console=False)
    expected = fallback_root / "logs" / "blogsync.log"

    assert log_path == expected
    assert expected.exists()


def test_structured_log_keeps_transaction_context(tmp_path: Path):
    _reset_logger()
    logging_utils.setup_logging(tmp_path, level="INFO", console=False)

    logging.getLogger("blogsync.sync.orchestrator").error(
        "failed", extra={"branch": "main", "state": "advancing_ref", "error_code": "stale_branch"}
    )
    for handler in logging.getLogger("blogsync").handlers:
        handler.flush()

    lines = (tmp_path / "logs" / "blogsync.jsonl").read_text(encoding="utf-8").splitlines()
    entry = json.loads(lines[-1])
    assert entry["context"] == {"branch": "main", "state": "advancing_ref", "error_code": "stale_branch"}
