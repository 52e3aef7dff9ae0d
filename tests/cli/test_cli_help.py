from typer.testing import CliRunner
from congruence.cli.app import app

runner = CliRunner()

def test_cli_help_runs():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "Usage" in result.stdout
    assert "compare" in result.stdout
    assert "find" in result.stdout
