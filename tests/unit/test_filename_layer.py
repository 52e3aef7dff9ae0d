# tests/unit/test_filename_layer.py
import pytest

from congruence.adapters.similarity.filename_layer import FilenameLayer
from congruence.domain.models import FileDescriptor


def _analyze(a: str, b: str):
    return FilenameLayer().analyze(FileDescriptor(a), FileDescriptor(b))


def test_same_name_in_different_directories():
    out = _analyze("docs/notes.md", "archive/notes.md")
    assert out.score == 1.0
    assert out.confidence == 0.9
    assert out.breakdown["patterns"] == ["exact_match"]


def test_version_suffix_is_recognised():
    out = _analyze("notes_v1.md", "notes_v2.md")
    assert "version_pattern" in out.breakdown["patterns"]
    assert out.confidence == 0.8
    assert out.score > 0.7


@pytest.mark.parametrize(
    "a, b, pattern",
    [
        ("config.json", "config_backup.json", "backup_pattern"),
        ("report.txt", "report (1).txt", "copy_pattern"),
        ("minutes-2024-01-05.md", "minutes-2024-02-09.md", "date_pattern"),
        ("chapter1.md", "chapter12.md", "number_sequence"),
        ("README.md", "readme.md", "case_variation"),
        ("user-guide.md", "user_guide.md", "separator_variation"),
        ("index.js", "index.ts", "related_extensions"),
    ],
)
def test_naming_patterns(a, b, pattern):
    assert pattern in _analyze(a, b).breakdown["patterns"]


def test_related_extensions_score_partially():
    assert _analyze("index.js", "index.ts").breakdown["extension"] == 0.7
    assert _analyze("index.js", "index.png").breakdown["extension"] == 0.0


def test_unrelated_names_score_low():
    out = _analyze("budget.xlsx", "readme.md")
    assert out.score < 0.3
    assert out.confidence == 0.5
    assert out.breakdown["patterns"] == []


@pytest.mark.parametrize("a, b", [("notes_v1.md", "notes_v2.md"), ("budget.xlsx", "readme.md")])
def test_symmetric(a, b):
    assert _analyze(a, b).score == pytest.approx(_analyze(b, a).score)
