# src/classtrack/tests/test_cli.py
from typer.testing import CliRunner

from classtrack.__main__ import app

runner = CliRunner()


def test_help_lists_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("init-db", "ensure-upcoming", "summary"):
        assert command in result.output


def test_bad_today_option_fails():
    result = runner.invoke(app, ["summary", "00000000-0000-0000-0000-000000000001", "--today", "yesterday"])
    assert result.exit_code == 2
