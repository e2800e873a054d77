from __future__ import annotations

from typer.testing import CliRunner

from assetrepo_cli.cli import app


def test_cli_help_lists_repository_commands() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for command in ("smoke", "replay", "config-check", "version"):
        assert command in result.output
