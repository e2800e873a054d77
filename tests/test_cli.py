from __future__ import annotations

import json
import logging
from pathlib import Path

from typer.testing import CliRunner

from assetrepo import __version__
from assetrepo.errors import ErrorKind, Outcome
from assetrepo_cli.cli import _delivered, app

ROOT = Path(__file__).resolve().parents[1]


def _write_script(tmp_path: Path, steps: list[dict]) -> Path:
    path = tmp_path / "script.json"
    path.write_text(json.dumps(steps), encoding="utf-8")
    return path


def test_version_command() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert f"assetrepo {__version__}" in result.output


def test_verbose_flag_enables_debug_logging() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--verbose", "smoke"])

    assert result.exit_code == 0
    assert logging.getLogger("assetrepo").isEnabledFor(logging.DEBUG)

    runner.invoke(app, ["version"])


def test_smoke_command_reports_ok() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["smoke"])

    assert result.exit_code == 0
    assert "repository ok" in result.output


def test_replay_runs_script(tmp_path) -> None:
    script = _write_script(
        tmp_path,
        [
            {"op": "mkdir", "path": "/docs"},
            {"op": "put", "path": "/docs/a.txt", "content": "alpha"},
            {"op": "update", "path": "/docs/a.txt", "content": "beta"},
            {"op": "cat", "path": "/docs/a.txt"},
            {"op": "checkout", "path": "/docs/a.txt", "by": "alice"},
            {"op": "ls", "path": "/docs"},
            {"op": "find", "term": "a\\.txt$", "regex": True},
            {"op": "mkdir", "path": "/"},
            {"op": "rm", "path": "/docs/a.txt"},
            {"op": "rmdir", "path": "/docs"},
        ],
    )
    runner = CliRunner()
    result = runner.invoke(app, ["replay", "--script", str(script)])

    assert result.exit_code == 0
    assert "content='beta'" in result.output
    assert "checked_out=true" in result.output
    assert "entries=a.txt" in result.output
    assert "error=RootOperationForbidden" in result.output
    assert "steps=10 failed=1" in result.output


def test_replay_strict_fails_on_errors(tmp_path) -> None:
    script = _write_script(tmp_path, [{"op": "cat", "path": "/missing.txt"}])
    runner = CliRunner()
    result = runner.invoke(app, ["replay", "--script", str(script), "--strict"])

    assert result.exit_code == 1
    assert "error=PathNotFound" in result.output
    assert "steps=1 failed=1" in result.output


def test_replay_accepts_expected_errors(tmp_path) -> None:
    script = _write_script(
        tmp_path,
        [
            {"op": "rmdir", "path": "/", "expect": "RootOperationForbidden"},
            {"op": "info", "path": "/"},
        ],
    )
    runner = CliRunner()
    result = runner.invoke(app, ["replay", "--script", str(script), "--strict"])

    assert result.exit_code == 0
    assert "expected=RootOperationForbidden" in result.output
    assert "type=directory" in result.output
    assert "steps=2 failed=0" in result.output


def test_replay_rejects_invalid_script(tmp_path) -> None:
    script = _write_script(tmp_path, [{"op": "put"}])
    runner = CliRunner()
    result = runner.invoke(app, ["replay", "--script", str(script)])

    assert result.exit_code == 1
    assert "Invalid replay script" in result.output


def test_config_check_command(tmp_path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        app, ["config-check", "--config", str(ROOT / "config" / "config.example.yaml")]
    )

    assert result.exit_code == 0
    assert "backend=memory delay_ms=0 window_ms=1000" in result.output

    bad = tmp_path / "bad.yaml"
    bad.write_text("store:\n  backend: ftp\n", encoding="utf-8")
    result = runner.invoke(app, ["config-check", "--config", str(bad)])
    assert result.exit_code == 1


def test_undelivered_result_becomes_failed_step() -> None:
    missing = _delivered(None, "/a.txt")

    assert missing.error is not None
    assert missing.error.kind == ErrorKind.INVALID_ARGUMENT
    assert missing.error.path == "/a.txt"

    delivered = Outcome.success(True)
    assert _delivered(delivered, "/a.txt") is delivered
