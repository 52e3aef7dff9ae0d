# tests/unit/test_ssdeep_adapter.py
import types

import pytest

import congruence.adapters.similarity.ssdeep_adapter as mod
from congruence.adapters.similarity.ssdeep_adapter import SsdeepContentLayer
from congruence.domain.models import FileDescriptor

A = FileDescriptor("a.txt", "alpha " * 40)
B = FileDescriptor("b.txt", "alpha " * 39 + "omega ")


def _fake_backend(match: int, hashed: list):
    def fake_hash(data: bytes) -> str:
        hashed.append(data)
        return f"fake:{len(data)}"

    return types.SimpleNamespace(hash=fake_hash, compare=lambda a, b: match)


def test_name():
    assert SsdeepContentLayer().name == "content"


def test_declines_when_backend_missing(monkeypatch):
    # Simulate Windows without ssdeep available
    monkeypatch.setattr(mod, "_ssdeep", None, raising=False)
    assert SsdeepContentLayer().can_analyze(A, B) is False


def test_declines_without_content(monkeypatch):
    monkeypatch.setattr(mod, "_ssdeep", _fake_backend(50, []), raising=False)
    assert SsdeepContentLayer().can_analyze(A, FileDescriptor("b.txt")) is False


def test_identical_bytes_skip_fuzzy_hash(monkeypatch):
    hashed = []
    monkeypatch.setattr(mod, "_ssdeep", _fake_backend(0, hashed), raising=False)
    out = SsdeepContentLayer().analyze(A, FileDescriptor("copy.txt", A.content))
    assert out.score == 1.0
    assert out.breakdown["hash_match"] is True
    assert hashed == []


def test_fuzzy_match_is_scaled_to_unit_interval(monkeypatch):
    hashed = []
    monkeypatch.setattr(mod, "_ssdeep", _fake_backend(88, hashed), raising=False)
    out = SsdeepContentLayer().analyze(A, B)
    assert out.score == pytest.approx(0.88)
    assert out.breakdown["ssdeep_match"] == 88
    assert out.confidence == 1.0  # both inputs are over 200 bytes
    # both sides were hashed as UTF-8 bytes
    assert hashed == [A.content.encode("utf-8"), B.content.encode("utf-8")]


def test_backend_error_propagates(monkeypatch):
    def bad_hash(data: bytes) -> str:
        raise RuntimeError("boom")

    monkeypatch.setattr(mod, "_ssdeep", types.SimpleNamespace(hash=bad_hash, compare=None), raising=False)
    with pytest.raises(RuntimeError):
        SsdeepContentLayer().analyze(A, B)
