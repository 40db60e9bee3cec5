"""Tests covering CLI helpers in the app module."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from blogsync import app
from blogsync.app import _resolve_ui_verbose, build_router, execute_cli_command
from blogsync.configuration import ConfigurationBundle
from blogsync.slash_commands import SlashCommand


def _bundle(merged: Optional[dict] = None) -> ConfigurationBundle:
    return ConfigurationBundle(
        home_dir=Path("/tmp/blogsync-home"),
        status="ready",
        merged=merged or {},
    )


def test_resolve_ui_verbose_defaults_to_true(monkeypatch):
    monkeypatch.delenv("BLOGSYNC_UI_VERBOSE", raising=False)
    assert _resolve_ui_verbose(_bundle()) is True


def test_resolve_ui_verbose_reads_config(monkeypatch):
    monkeypatch.delenv("BLOGSYNC_UI_VERBOSE", raising=False)
    assert _resolve_ui_verbose(_bundle({"ui": {"verbose": False}})) is False


def test_resolve_ui_verbose_env_override(monkeypatch):
    monkeypatch.setenv("BLOGSYNC_UI_VERBOSE", "0")
    assert _resolve_ui_verbose(_bundle({"ui": {"verbose": True}})) is False


def test_build_router_registers_every_command():
    router = build_router(_bundle())
    assert set(router.command_names) == {
        "api", "config", "delete", "help", "log", "publish", "show", "site", "status",
    }


def test_execute_cli_command_keeps_quoted_arguments(capsys):
    router = build_router(_bundle())
    seen = {}

    def _echo(context, args):
        seen["args"] = args
        return "ok"

    router.register(SlashCommand(name="echo", description="Echo", handler=_echo))
    execute_cli_command('echo "two words"', router)

    assert seen["args"] == ["two words"]
    assert "ok" in capsys.readouterr().out


def test_execute_cli_command_reports_unbalanced_quotes():
    router = build_router(_bundle())
    result = execute_cli_command('publish "unterminated', router, suppress_output=True)
    assert "Cannot parse command" in result


def test_main_runs_one_shot_command(tmp_path: Path, monkeypatch, capsys):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("BLOGSYNC_HOME", str(home))
    monkeypatch.setattr(app, "setup_logging", lambda *args, **kwargs: home / "logs" / "blogsync.log")

    assert app.main(["/help", "status"]) == 0

    assert "/status" in capsys.readouterr().out
