from pathlib import Path

import pytest

yaml = pytest.importorskip("yaml")

from blogsync.commands.config import COMMAND
from blogsync.configuration import load_runtime_configuration
from blogsync.slash_commands import CommandRouter, SlashCommandContext


def _build_context(tmp_path: Path):
    home_dir = tmp_path / "home"
    (home_dir / "config").mkdir(parents=True)
    bundle = load_runtime_configuration(home_dir)
    router = CommandRouter(bundle)
    context = SlashCommandContext(config=bundle, router=router)
    return context, home_dir


def test_config_set_updates_override_file_and_reload(tmp_path: Path):
    context, home_dir = _build_context(tmp_path)

    output = COMMAND.handler(context, ["repository.owner", "alice"])

    override = home_dir / "config" / "99-cli-overrides.yml"
    assert override.exists()
    data = yaml.safe_load(override.read_text(encoding="utf-8"))
    assert data["repository"]["owner"] == "alice"
    assert context.router.config.merged["repository"]["owner"] == "alice"
    assert "repository.owner" in output


def test_config_get_returns_value(tmp_path: Path):
    context, _ = _build_context(tmp_path)
    COMMAND.handler(context, ["repository.branch", "pages"])

    output = COMMAND.handler(context, ["repository.branch"])

    assert 'repository.branch = "pages"' in output


def test_config_set_reports_schema_errors(tmp_path: Path):
    context, _ = _build_context(tmp_path)

    output = COMMAND.handler(context, ["sync.upload_concurrency", "many"])

    assert "must be of type int" in output
    assert context.router.config.merged["sync"]["upload_concurrency"] == 4


def test_config_set_rejects_mappings(tmp_path: Path):
    context, _ = _build_context(tmp_path)
    output = COMMAND.handler(context, ["repository", "{owner: alice}"])
    assert "nested mappings" in output


def test_config_view_lists_loaded_files(tmp_path: Path):
    context, _ = _build_context(tmp_path)
    output = COMMAND.handler(context, ["--yaml"])
    assert "blogsync.yml" in output
    assert "upload_concurrency" in output


def test_config_rejects_unknown_keys(tmp_path: Path):
    context, home_dir = _build_context(tmp_path)
    output = COMMAND.handler(context, ["repository.colour", "red"])
    assert "Unknown key" in output
    assert not (home_dir / "config" / "99-cli-overrides.yml").exists()


def test_config_unset_restores_default(tmp_path: Path):
    context, home_dir = _build_context(tmp_path)
    COMMAND.handler(context, ["repository.branch", "pages"])

    output = COMMAND.handler(context, ["unset", "repository.branch"])

    assert 'reset to "main"' in output
    data = yaml.safe_load((home_dir / "config" / "99-cli-overrides.yml").read_text(encoding="utf-8"))
    assert data == {}
    assert "is not set" in COMMAND.handler(context, ["unset", "repository.branch"])


def test_config_view_shows_value_sources(tmp_path: Path):
    context, _ = _build_context(tmp_path)
    COMMAND.handler(context, ["repository.owner", "alice"])

    output = COMMAND.handler(context, [])

    assert "repository.owner" in output
    assert "home" in output
