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
from concurrent.futures import CancelledError, Executor, Future, wait
from dataclasses import dataclass
from typing import Mapping, Sequence

from ..domain.config import SimilarityConfig
from ..domain.errors import AnalysisTimeoutError, LayerError, ServiceClosedError
from ..domain.models import FileDescriptor, LayerScore
from ..ports.layer import SimilarityLayer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayerRun:
    """
    Outcome of running every layer once for a pair.

    Attributes:
        scores: Every known layer -> LayerScore; skipped/failed layers are zero.
        invoked: Layers whose analysis was launched, in registration order.
        succeeded: Layers that returned a score; only these are aggregated.
    """
    scores: Mapping[str, LayerScore]
    invoked: tuple[str, ...]
    succeeded: frozenset[str]


class LayerOrchestrator:
    """
    Runs the enabled layers for one pair concurrently under a single deadline.

    Notes:
      * A failing layer is isolated: it scores zero and the others carry on.
      * Missing the deadline fails the whole comparison; partial results are
        never returned. Still-running layers are signalled and abandoned.
    """

    def __init__(self, layers: Sequence[SimilarityLayer], executor: Executor) -> None:
        self._layers = tuple(layers)
        self._executor = executor

    @property
    def layer_names(self) -> tuple[str, ...]:
        return tuple(layer.name for layer in self._layers)

    def run(
        self, file_a: FileDescriptor, file_b: FileDescriptor, config: SimilarityConfig
    ) -> LayerRun:
        timeout_ms = config.performance.max_analysis_time_ms
        deadline = time.monotonic() + timeout_ms / 1000.0
        cancel_event = threading.Event()

        scores: dict[str, LayerScore] = {}
        futures: dict[str, Future] = {}

        for layer in self._layers:
            name = layer.name
            if not config.is_enabled(name):
                scores[name] = LayerScore.zero("layer disabled")
                continue
            try:
                applicable = layer.can_analyze(file_a, file_b)
            except Exception as e:
                logger.warning("LayerOrchestrator.run: %s.can_analyze failed: %s", name, e)
                applicable = False
            if not applicable:
                scores[name] = LayerScore.zero("layer not applicable to these files")
                continue
            try:
                futures[name] = self._executor.submit(
                    self._invoke, layer, file_a, file_b, cancel_event
                )
            except RuntimeError as e:
                # submit() after shutdown
                cancel_event.set()
                for f in futures.values():
                    f.cancel()
                raise ServiceClosedError(f"layer pool is shut down: {e}") from e

        if futures:
            remaining = max(0.0, deadline - time.monotonic())
            _done, not_done = wait(futures.values(), timeout=remaining)
            if not_done:
                cancel_event.set()
                for f in not_done:
                    f.cancel()
                pending = [name for name, f in futures.items() if f in not_done]
                logger.warning(
                    "LayerOrchestrator.run: %s vs %s exceeded %d ms (pending: %s)",
                    file_a.path,
                    file_b.path,
                    timeout_ms,
                    ", ".join(pending),
                )
                raise AnalysisTimeoutError(
                    f"similarity analysis exceeded {timeout_ms} ms", timeout_ms, pending
                )

        succeeded = set()
        for name, future in futures.items():
            try:
                scores[name] = future.result()
                succeeded.add(name)
            except LayerError as e:
                logger.warning("LayerOrchestrator.run: %s", e)
                scores[name] = LayerScore.zero(str(e))
            except CancelledError as e:
                raise ServiceClosedError("layer pool was shut down mid-analysis") from e

        return LayerRun(
            scores={layer.name: scores[layer.name] for layer in self._layers},
            invoked=tuple(name for name in self.layer_names if name in futures),
            succeeded=frozenset(succeeded),
        )

    @staticmethod
    def _invoke(
        layer: SimilarityLayer,
        file_a: FileDescriptor,
        file_b: FileDescriptor,
        cancel_event: threading.Event,
    ) -> LayerScore:
        name = layer.name
        try:
            score = layer.analyze(file_a, file_b, cancel_event=cancel_event)
        except Exception as e:
            raise LayerError(f"layer '{name}' failed: {e}", name) from e
        if not isinstance(score, LayerScore):
            raise LayerError(
                f"layer '{name}' returned {type(score).__name__}, expected LayerScore", name
            )
        return score
