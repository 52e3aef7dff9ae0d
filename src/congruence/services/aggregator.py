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

from typing import Iterable, Mapping, Tuple

from ..domain.models import FileDescriptor, LayerScore


def is_identical(file_a: FileDescriptor, file_b: FileDescriptor) -> bool:
    """Same path, or the same content and metadata."""
    if file_a.path == file_b.path:
        return True
    return (
        file_a.content is not None
        and file_a.content == file_b.content
        and file_a.metadata == file_b.metadata
    )


def aggregate(
    scores: Mapping[str, LayerScore],
    weights: Mapping[str, float],
    contributing: Iterable[str],
) -> Tuple[float, float]:
    """
    Weighted sum of score and confidence over the contributing layers.

    A plain sum, not a weighted average: weights total at most 1 and layers
    that did not contribute add nothing.
    """
    overall_score = 0.0
    overall_confidence = 0.0
    for name in contributing:
        layer_score = scores.get(name)
        if layer_score is None:
            continue
        weight = weights.get(name, 0.0)
        overall_score += weight * layer_score.score
        overall_confidence += weight * layer_score.confidence
    return _clamp(overall_score), _clamp(overall_confidence)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))
