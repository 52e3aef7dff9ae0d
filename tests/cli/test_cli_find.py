import json
from pathlib import Path
from typer.testing import CliRunner
from congruence.cli.app import app

runner = CliRunner()

BODY = "# Setup guide\n\n## Install\n\nRun the installer and restart.\n\n## Configure\n\nEdit the settings file.\n"


def test_cli_find_ranks_candidates_in_directory(tmp_path: Path):
    # Arrange
    root = tmp_path / "docs"
    (root / "nested").mkdir(parents=True)
    target = root / "setup_guide.md"
    near = root / "nested" / "setup_guide_old.md"
    far = root / "shopping.txt"
    target.write_text(BODY)
    near.write_text(BODY.replace("restart", "reboot"))
    far.write_text("milk\neggs\nbread\n")
    out = tmp_path / "batch.json"

    # Act
    r = runner.invoke(
        app, ["find", "--target", str(target), "--candidates", str(root), "--out", str(out)]
    )

    # Assert
    assert r.exit_code == 0
    batch = json.loads(out.read_text())
    assert batch["new_file"] == str(target.resolve())
    ranked = [s["metadata"]["target_file"] for s in batch["similarities"]]
    # the target is never compared with itself
    assert ranked == [str(near.resolve()), str(far.resolve())]
    assert batch["best_match"]["metadata"]["target_file"] == str(near.resolve())


def test_cli_find_min_score_can_leave_no_best_match(tmp_path: Path):
    target = tmp_path / "a.md"
    other = tmp_path / "b.txt"
    target.write_text("# Title\n\nSomething about databases.\n")
    other.write_text("entirely different words\n")
    out = tmp_path / "batch.json"

    r = runner.invoke(
        app,
        [
            "find", "--target", str(target), "--candidates", str(other),
            "--min-score", "0.99", "--out", str(out),
        ],
    )

    assert r.exit_code == 0
    batch = json.loads(out.read_text())
    assert len(batch["similarities"]) == 1
    assert batch["best_match"] is None
