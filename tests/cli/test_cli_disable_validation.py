# tests/cli/test_cli_disable_validation.py
from pathlib import Path

from typer.testing import CliRunner
from congruence.cli.app import app

runner = CliRunner()


def test_compare_unknown_layer_fails_cleanly(tmp_path: Path):
    a = tmp_path / "a.txt"
    b = tmp_path / "b.txt"
    a.write_text("one\n")
    b.write_text("two\n")
    r = runner.invoke(
        app, ["compare", "--source", str(a), "--target", str(b), "--disable", "notalayer"]
    )
    assert r.exit_code != 0
    assert "Unknown layer(s)" in r.output


def test_invalid_config_file_fails_cleanly(tmp_path: Path):
    a = tmp_path / "a.txt"
    a.write_text("one\n")
    cfg = tmp_path / "config.json"
    cfg.write_text('{"layer_weights": {"filename": 0.9}}')  # pushes the total past 1.0
    r = runner.invoke(
        app, ["compare", "--source", str(a), "--target", str(a), "--config", str(cfg)]
    )
    assert r.exit_code != 0
    assert "Invalid configuration" in r.output
