import threading
import time

import pytest

from congruence.domain.config import SimilarityConfig
from congruence.domain.errors import (
    AnalysisError,
    AnalysisTimeoutError,
    ConfigurationError,
    ServiceClosedError,
)
from congruence.domain.models import FileDescriptor, FileMetadata, LayerScore, RecommendedAction
from congruence.ports.layer import SimilarityLayer
from congruence.services import SimilarityService

A = FileDescriptor("notes/a.md", "alpha text", FileMetadata(size=10, extension=".md", modified_ns=1))
B = FileDescriptor("notes/b.md", "beta text", FileMetadata(size=9, extension=".md", modified_ns=2))


class CountingLayer(SimilarityLayer):
    def __init__(self, name: str, score: float, confidence: float = 1.0):
        self._name = name
        self._score = score
        self._confidence = confidence
        self.calls = 0
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    def analyze(self, file_a, file_b, *, cancel_event=None) -> LayerScore:
        with self._lock:
            self.calls += 1
        return LayerScore(self._score, self._confidence, f"{self._name} fixed")


class BoomLayer(CountingLayer):
    def analyze(self, file_a, file_b, *, cancel_event=None) -> LayerScore:
        raise RuntimeError("layer exploded")


class StuckLayer(CountingLayer):
    """Ignores cancellation; sleeps well past the budget."""

    def analyze(self, file_a, file_b, *, cancel_event=None) -> LayerScore:
        time.sleep(0.5)
        return LayerScore(1.0, 1.0)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _config(**overrides) -> SimilarityConfig:
    base = {
        "layer_weights": {"filename": 0.5, "structure": 0.3, "semantic": 0.2, "content": 0.0},
        "enabled_layers": {"filename": True, "structure": True, "semantic": True},
    }
    base.update(overrides)
    return SimilarityConfig.from_dict(base)


@pytest.fixture
def layers():
    return [
        CountingLayer("filename", 1.0),
        CountingLayer("structure", 0.5),
        CountingLayer("semantic", 0.0),
    ]


@pytest.fixture
def service(layers):
    with SimilarityService(_config(), layers) as svc:
        yield svc


def test_identity_short_circuits_layers(service, layers):
    result = service.analyze_similarity(A, A)
    assert result.overall_score == 1.0
    assert result.overall_confidence == 1.0
    assert result.recommendation.action is RecommendedAction.DUPLICATE
    assert result.metadata.algorithms_used == ()
    assert all(layer.calls == 0 for layer in layers)


def test_weighted_aggregation(service):
    result = service.analyze_similarity(A, B)
    assert result.overall_score == pytest.approx(0.65, abs=1e-9)
    assert result.overall_confidence == pytest.approx(1.0)
    assert result.recommendation.action is RecommendedAction.REVIEW
    assert result.recommendation.involved_files == ("notes/a.md", "notes/b.md")
    assert result.metadata.algorithms_used == ("filename", "structure", "semantic")
    assert set(result.layers) == {"filename", "structure", "semantic"}


def test_symmetry_second_call_is_cache_hit(service, layers):
    forward = service.analyze_similarity(A, B)
    backward = service.analyze_similarity(B, A)
    assert backward.overall_score == forward.overall_score
    assert backward.overall_confidence == forward.overall_confidence
    assert all(layer.calls == 1 for layer in layers)
    # The cached verdict is reported from the caller's point of view.
    assert backward.metadata.source_file == "notes/b.md"
    assert backward.metadata.target_file == "notes/a.md"
    assert backward.recommendation.involved_files == ("notes/b.md", "notes/a.md")


def test_update_or_merge_follows_caller_orientation():
    layers = [CountingLayer("filename", 1.0), CountingLayer("structure", 1.0), CountingLayer("semantic", 0.0)]
    with SimilarityService(_config(), layers) as svc:
        forward = svc.analyze_similarity(A, B)
        backward = svc.analyze_similarity(B, A)
    assert forward.overall_score == pytest.approx(0.8)
    assert forward.recommendation.action is RecommendedAction.UPDATE  # B is newer
    assert backward.recommendation.action is RecommendedAction.MERGE
    assert layers[0].calls == 1


def test_disabled_layer_is_visible_but_excluded(layers):
    cfg = _config(enabled_layers={"structure": False})
    with SimilarityService(cfg, layers) as svc:
        result = svc.analyze_similarity(A, B)
    assert result.layers["structure"].score == 0.0
    assert result.layers["structure"].confidence == 0.0
    assert "structure" not in result.metadata.algorithms_used
    assert result.overall_score == pytest.approx(0.5)
    assert layers[1].calls == 0


def test_partial_failure_uses_remaining_layers():
    layers = [CountingLayer("filename", 1.0), BoomLayer("structure", 1.0), CountingLayer("semantic", 1.0)]
    with SimilarityService(_config(), layers) as svc:
        result = svc.analyze_similarity(A, B)
    assert result.layers["structure"].score == 0.0
    assert result.layers["structure"].confidence == 0.0
    assert "layer exploded" in result.layers["structure"].explanation
    assert result.overall_score == pytest.approx(0.7)


def test_timeout_raises_instead_of_partial_result():
    cfg = _config(performance={"max_analysis_time_ms": 50})
    with SimilarityService(cfg, [CountingLayer("filename", 1.0), StuckLayer("structure", 1.0)]) as svc:
        started = time.monotonic()
        with pytest.raises(AnalysisTimeoutError):
            svc.analyze_similarity(A, B)
        # abandoned, not awaited
        assert time.monotonic() - started < 0.4


def test_timeout_result_is_not_cached():
    cfg = _config(performance={"max_analysis_time_ms": 50})
    stuck = StuckLayer("structure", 1.0)
    with SimilarityService(cfg, [stuck]) as svc:
        with pytest.raises(AnalysisTimeoutError):
            svc.analyze_similarity(A, B)
        with pytest.raises(AnalysisTimeoutError):
            svc.analyze_similarity(A, B)


def test_cache_entry_expires_after_ttl(layers):
    clock = FakeClock()
    cfg = _config(performance={"cache_ttl_ms": 1000})
    with SimilarityService(cfg, layers, clock=clock) as svc:
        svc.analyze_similarity(A, B)
        clock.now = 0.5
        svc.analyze_similarity(A, B)
        assert layers[0].calls == 1
        clock.now = 1.5
        svc.analyze_similarity(A, B)
        assert layers[0].calls == 2


def test_disabled_cache_always_recomputes(layers):
    with SimilarityService(_config(performance={"enable_cache": False}), layers) as svc:
        svc.analyze_similarity(A, B)
        svc.analyze_similarity(A, B)
    assert layers[0].calls == 2


def test_clear_cache_forces_recompute(service, layers):
    service.analyze_similarity(A, B)
    service.clear_cache()
    service.analyze_similarity(A, B)
    assert layers[0].calls == 2


def test_invalid_update_keeps_previous_config(service):
    before = service.get_config()
    with pytest.raises(ConfigurationError):
        service.update_config({"layer_weights": {"filename": 1.0}})  # total 1.5
    with pytest.raises(ConfigurationError):
        service.update_config({"thresholds": {"similar": 0.99}})  # above identical
    assert service.get_config() is before


def test_valid_update_applies_and_clears_cache(service, layers):
    service.analyze_similarity(A, B)
    cfg = service.update_config({"thresholds": {"identical": 0.6, "similar": 0.5}})
    assert service.get_config() is cfg
    result = service.analyze_similarity(A, B)
    assert layers[0].calls == 2
    assert result.recommendation.action is RecommendedAction.DUPLICATE


def test_update_can_resize_worker_pool(service):
    service.update_config({"performance": {"max_workers": 2}})
    assert service.analyze_similarity(A, B).overall_score == pytest.approx(0.65)


@pytest.mark.parametrize(
    "bad",
    [
        None,
        "notes/a.md",
        FileDescriptor(""),
        FileDescriptor("   "),
        FileDescriptor("x.md", metadata=FileMetadata(size=-1)),
        FileDescriptor("x.md", metadata=None),  # type: ignore[arg-type]
    ],
)
def test_malformed_input_raises_analysis_error(service, bad):
    with pytest.raises(AnalysisError):
        service.analyze_similarity(A, bad)


def test_duplicate_layer_names_are_rejected():
    with pytest.raises(ConfigurationError):
        SimilarityService(_config(), [CountingLayer("filename", 1.0), CountingLayer("filename", 0.5)])


def test_concurrent_callers_get_consistent_results(service):
    results = []

    def worker():
        results.append(service.analyze_similarity(A, B).overall_score)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(results) == 8
    assert all(r == pytest.approx(0.65) for r in results)


class HangsOnLayer(CountingLayer):
    """Ignores cancellation for one path only."""

    def __init__(self, name: str, score: float, slow_path: str):
        super().__init__(name, score)
        self._slow_path = slow_path

    def analyze(self, file_a, file_b, *, cancel_event=None) -> LayerScore:
        if self._slow_path in (file_a.path, file_b.path):
            time.sleep(1.0)
        return super().analyze(file_a, file_b, cancel_event=cancel_event)


def test_abandoned_layers_do_not_starve_later_comparisons():
    slow_path = "notes/slow.md"
    cfg = _config(performance={"max_workers": 2, "max_analysis_time_ms": 100})
    layer = HangsOnLayer("filename", 1.0, slow_path)
    with SimilarityService(cfg, [layer]) as svc:
        for _ in range(2):
            with pytest.raises(AnalysisTimeoutError):
                svc.analyze_similarity(A, FileDescriptor(slow_path, "slow"))
        result = svc.analyze_similarity(A, B)
    assert result.overall_score == pytest.approx(0.5)


class ReconfiguringLayer(CountingLayer):
    """Swaps the thresholds while the first comparison is running."""

    service = None

    def analyze(self, file_a, file_b, *, cancel_event=None) -> LayerScore:
        if self.calls == 0:
            self.service.update_config({"thresholds": {"identical": 0.75, "similar": 0.5}})
        return super().analyze(file_a, file_b, cancel_event=cancel_event)


def test_result_from_replaced_config_is_not_cached():
    cfg = SimilarityConfig(layer_weights={"filename": 1.0}, enabled_layers={"filename": True})
    layer = ReconfiguringLayer("filename", 0.8)
    c1 = FileDescriptor("notes/c1.md", "one")
    c2 = FileDescriptor("notes/c2.md", "two")
    with SimilarityService(cfg, [layer]) as svc:
        layer.service = svc
        svc.find_similar_files(A, [c1, c2])
        assert layer.calls == 2
        result = svc.analyze_similarity(A, c2)
    # recomputed under the new thresholds rather than served from the batch
    assert layer.calls == 3
    assert result.recommendation.action is RecommendedAction.DUPLICATE


def test_clear_cache_keeps_caching_afterwards(service, layers):
    service.clear_cache()
    service.analyze_similarity(A, B)
    service.analyze_similarity(A, B)
    assert layers[0].calls == 1


def test_use_after_close_raises_typed_error(layers):
    svc = SimilarityService(_config(), layers)
    svc.close()
    svc.close()
    with pytest.raises(ServiceClosedError):
        svc.analyze_similarity(A, B)
    with pytest.raises(ServiceClosedError):
        svc.find_similar_files(A, [B])
    with pytest.raises(ServiceClosedError):
        svc.update_config({"thresholds": {"identical": 0.9}})
