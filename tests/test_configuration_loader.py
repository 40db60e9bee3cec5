from pathlib import Path

from blogsync.configuration import load_runtime_configuration


def _write_override(home: Path, content: str) -> None:
    cfg_dir = home / "config"
    cfg_dir.mkdir(parents=True, exist_ok=True)
    (cfg_dir / "local.yml").write_text(content)


def test_invalid_types_raise_diagnostics(tmp_path: Path):
    home = tmp_path / "home"
    home.mkdir()
    _write_override(
        home,
        """
        sync:
          upload_concurrency: "lots"
        """,
    )

    bundle = load_runtime_configuration(home)

    assert bundle.status == "invalid"
    assert any("upload_concurrency" in diag.message for diag in bundle.diagnostics)
    assert bundle.merged["sync"]["upload_concurrency"] == 4


def test_booleans_are_not_accepted_as_numbers(tmp_path: Path):
    home = tmp_path / "home"
    home.mkdir()
    _write_override(home, "api:\n  port: true\n")

    bundle = load_runtime_configuration(home)

    assert bundle.status == "invalid"
    assert bundle.merged["api"]["port"] == 8000


def test_choices_are_enforced(tmp_path: Path):
    home = tmp_path / "home"
    home.mkdir()
    _write_override(home, "content:\n  default_format: html\n")

    bundle = load_runtime_configuration(home)

    assert any("default_format" in diag.message for diag in bundle.diagnostics)
    assert bundle.merged["content"]["default_format"] == "md"


def test_nested_retry_section_is_validated(tmp_path: Path):
    home = tmp_path / "home"
    home.mkdir()
    _write_override(home, "sync:\n  retry:\n    backoff: soon\n")

    bundle = load_runtime_configuration(home)

    assert any("sync.retry.backoff" in diag.message for diag in bundle.diagnostics)
    assert bundle.merged["sync"]["retry"]["backoff"] == 0.5


def test_unknown_keys_warn(tmp_path: Path):
    home = tmp_path / "home"
    home.mkdir()
    _write_override(
        home,
        """
        mystery:
          value: 1
        """,
    )

    bundle = load_runtime_configuration(home)

    assert any("Unknown configuration key" in diag.message for diag in bundle.diagnostics)


def test_retry_multiplier_and_wait_cap_are_known_keys(tmp_path: Path):
    home = tmp_path / "home"
    home.mkdir()
    _write_override(home, "sync:\n  retry:\n    multiplier: 3\n    max_retry_after: 5\n")

    bundle = load_runtime_configuration(home)

    assert not any("Unknown configuration key" in diag.message for diag in bundle.diagnostics)
    assert bundle.merged["sync"]["retry"]["multiplier"] == 3
    assert bundle.merged["sync"]["retry"]["max_retry_after"] == 5
