# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

import logging
import threading
import time
import weakref
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from ..domain.config import DEFAULT_CONFIG, SimilarityConfig, merge_config, validate_config
from ..domain.errors import AnalysisError, AnalysisTimeoutError, ConfigurationError, ServiceClosedError
from ..domain.models import (
    BatchResult,
    FileDescriptor,
    FileMetadata,
    LayerScore,
    ResultMetadata,
    SimilarityResult,
)
from ..ports.layer import SimilarityLayer
from .aggregator import aggregate, is_identical
from .orchestrator import LayerOrchestrator
from .ranking import rank_results
from .recommender import Recommender
from .result_cache import ResultCache, pair_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _ActiveState:
    """
    Everything derived from one configuration; swapped as a unit.

    `generation` is the cache generation the state was built against; results
    computed from a replaced state are rejected by the cache.
    """
    config: SimilarityConfig
    orchestrator: LayerOrchestrator
    recommender: Recommender
    executor: ThreadPoolExecutor
    generation: int


class SimilarityService:
    """
    Multi-layer similarity analysis between file descriptors.

    - Runs the enabled layers concurrently on a shared thread pool.
    - Combines layer scores into a weighted verdict plus a recommended action.
    - Memoizes pairwise results in a TTL cache keyed independently of order.
    - Configuration is immutable; updates replace it atomically and clear the cache.

    Use as a context manager (or call `close()`) to release the thread pool.
    """

    def __init__(
        self,
        config: Optional[SimilarityConfig] = None,
        layers: Optional[Sequence[SimilarityLayer]] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        config = validate_config(config if config is not None else DEFAULT_CONFIG)
        self._layers = tuple(layers or ())
        names = [layer.name for layer in self._layers]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"duplicate layer name(s): {', '.join(duplicates)}")

        self._lock = threading.Lock()
        self._closed = False
        # Pools swapped out while callers may still hold them. They are not
        # shut down on swap; workers exit once the last reference is gone.
        self._retired: weakref.WeakSet = weakref.WeakSet()
        self._cache = ResultCache(
            config.performance.cache_ttl_ms,
            config.performance.max_cache_entries,
            clock=clock,
        )
        self._state = self._build_state(config, self._new_executor(config))
        logger.debug("SimilarityService ready with layers: %s", ", ".join(names) or "(none)")

    # --- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            executors = [self._state.executor, *self._retired]
        for executor in executors:
            # Layers that ignored cancellation must not block shutdown.
            executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> SimilarityService:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- configuration ------------------------------------------------------

    def get_config(self) -> SimilarityConfig:
        return self._state.config

    def update_config(self, partial: Mapping[str, Any]) -> SimilarityConfig:
        """
        Merge a partial update into the active configuration.

        Raises:
            ConfigurationError: the merged configuration is invalid. The
                previous configuration stays active and the cache is kept.
            ServiceClosedError: the service was closed.
        """
        with self._lock:
            self._ensure_open()
            current = self._state
            new_config = merge_config(current.config, partial)
            executor = current.executor
            if new_config.performance.max_workers != current.config.performance.max_workers:
                self._retired.add(executor)
                executor = self._new_executor(new_config)
            self._cache.configure(
                new_config.performance.cache_ttl_ms,
                new_config.performance.max_cache_entries,
            )
            self._state = self._build_state(new_config, executor)
        logger.info("SimilarityService: configuration updated; cache cleared")
        return new_config

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
            self._state = replace(self._state, generation=self._cache.generation)

    # --- analysis -----------------------------------------------------------

    def analyze_similarity(self, file_a: FileDescriptor, file_b: FileDescriptor) -> SimilarityResult:
        """
        Compare two files.

        Raises:
            AnalysisError: either descriptor is malformed.
            AnalysisTimeoutError: the layers did not finish within
                `performance.max_analysis_time_ms`.
            ServiceClosedError: the service was closed.
        """
        _validate_descriptor(file_a, "file_a")
        _validate_descriptor(file_b, "file_b")
        return self._analyze(file_a, file_b, self._active_state())

    def find_similar_files(
        self,
        target: FileDescriptor,
        candidates: Iterable[FileDescriptor],
        min_score: float = 0.0,
    ) -> BatchResult:
        """
        Compare `target` with every candidate and rank the results.

        Results are ordered by descending score, then descending confidence,
        then candidate order. `best_match` is the top result when its score
        reaches `min_score`; `potential_duplicates` holds the results at or
        above the `identical` threshold.
        """
        candidates = list(candidates)
        _validate_descriptor(target, "target")
        for i, candidate in enumerate(candidates):
            _validate_descriptor(candidate, f"candidates[{i}]")
        if isinstance(min_score, bool) or not isinstance(min_score, (int, float)) or not 0.0 <= min_score <= 1.0:
            raise AnalysisError(f"min_score must be in [0.0, 1.0], got {min_score!r}")

        state = self._active_state()
        started = time.perf_counter()
        # Sequential on purpose: each comparison already fans out on the pool.
        results = [self._analyze(target, candidate, state) for candidate in candidates]
        ranked = rank_results(results)

        best_match = ranked[0] if ranked and ranked[0].overall_score >= min_score else None
        identical = state.config.thresholds.identical
        duplicates = tuple(r for r in ranked if r.overall_score >= identical)

        return BatchResult(
            new_file=target.path,
            similarities=tuple(ranked),
            best_match=best_match,
            potential_duplicates=duplicates,
            total_analysis_time_ms=(time.perf_counter() - started) * 1000.0,
        )

    # --- helpers ------------------------------------------------------------

    def _analyze(self, file_a: FileDescriptor, file_b: FileDescriptor, state: _ActiveState) -> SimilarityResult:
        config = state.config
        use_cache = config.performance.enable_cache
        key = pair_key(file_a.path, file_b.path)
        generation = state.generation

        if use_cache:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("SimilarityService: cache hit for %s vs %s", file_a.path, file_b.path)
                return self._orient(cached, file_a, file_b, state)

        result = self._compute(file_a, file_b, state)

        if use_cache:
            self._cache.put(key, result, generation)
        return result

    def _compute(self, file_a: FileDescriptor, file_b: FileDescriptor, state: _ActiveState) -> SimilarityResult:
        started = time.perf_counter()
        config = state.config
        weights = config.weights_for(file_a.extension, file_b.extension)

        if is_identical(file_a, file_b):
            layers = {
                name: (
                    LayerScore(1.0, 1.0, "identical files")
                    if config.is_enabled(name)
                    else LayerScore.zero("layer disabled")
                )
                for name in state.orchestrator.layer_names
            }
            score, confidence, invoked = 1.0, 1.0, ()
        else:
            try:
                run = state.orchestrator.run(file_a, file_b, config)
            except AnalysisTimeoutError:
                self._retire_pool(state)
                raise
            layers = dict(run.scores)
            score, confidence = aggregate(run.scores, weights, run.succeeded)
            invoked = run.invoked

        recommendation = state.recommender.recommend(
            score, confidence, layers, weights, file_a, file_b
        )
        return SimilarityResult(
            overall_score=score,
            overall_confidence=confidence,
            layers=layers,
            recommendation=recommendation,
            metadata=ResultMetadata(
                analysis_time=datetime.now(timezone.utc),
                processing_time_ms=(time.perf_counter() - started) * 1000.0,
                algorithms_used=tuple(invoked),
                source_file=file_a.path,
                target_file=file_b.path,
            ),
        )

    @staticmethod
    def _orient(
        result: SimilarityResult, file_a: FileDescriptor, file_b: FileDescriptor, state: _ActiveState
    ) -> SimilarityResult:
        """Return a cached result as seen from `file_a`."""
        if result.metadata.source_file == file_a.path:
            return result
        weights = state.config.weights_for(file_a.extension, file_b.extension)
        recommendation = state.recommender.recommend(
            result.overall_score, result.overall_confidence, result.layers, weights, file_a, file_b
        )
        return replace(
            result,
            recommendation=recommendation,
            metadata=replace(result.metadata, source_file=file_a.path, target_file=file_b.path),
        )

    def _active_state(self) -> _ActiveState:
        with self._lock:
            self._ensure_open()
            return self._state

    def _ensure_open(self) -> None:
        if self._closed:
            raise ServiceClosedError("SimilarityService is closed")

    def _retire_pool(self, state: _ActiveState) -> None:
        """
        Replace the pool that abandoned layers are still occupying, so later
        comparisons do not queue behind them.
        """
        with self._lock:
            if self._closed or self._state.executor is not state.executor:
                return
            self._retired.add(state.executor)
            executor = self._new_executor(self._state.config)
            self._state = replace(
                self._state,
                executor=executor,
                orchestrator=LayerOrchestrator(self._layers, executor),
            )
        logger.warning("SimilarityService: layer pool replaced after a timeout")

    def _build_state(self, config: SimilarityConfig, executor: ThreadPoolExecutor) -> _ActiveState:
        return _ActiveState(
            config=config,
            orchestrator=LayerOrchestrator(self._layers, executor),
            recommender=Recommender(config.thresholds),
            executor=executor,
            generation=self._cache.generation,
        )

    @staticmethod
    def _new_executor(config: SimilarityConfig) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(
            max_workers=config.performance.max_workers,
            thread_name_prefix="congruence-layer",
        )


def _validate_descriptor(file: Any, label: str) -> None:
    if not isinstance(file, FileDescriptor):
        raise AnalysisError(f"{label}: expected FileDescriptor, got {type(file).__name__}")
    if not isinstance(file.path, str) or not file.path.strip():
        raise AnalysisError(f"{label}: missing or empty path")
    if file.content is not None and not isinstance(file.content, str):
        raise AnalysisError(f"{label}: content must be text, got {type(file.content).__name__}")
    if not isinstance(file.metadata, FileMetadata):
        raise AnalysisError(f"{label}: missing or invalid metadata")
    size = file.metadata.size
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        raise AnalysisError(f"{label}: metadata.size must be a non-negative integer, got {size!r}")
