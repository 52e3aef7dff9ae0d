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

from typing import Mapping

from ..domain.config import Thresholds
from ..domain.models import FileDescriptor, LayerScore, Recommendation, RecommendedAction

_SUMMARIES = {
    RecommendedAction.DUPLICATE: "Files are duplicates",
    RecommendedAction.UPDATE: "Target is a newer version of the source",
    RecommendedAction.MERGE: "Files are closely related",
    RecommendedAction.REVIEW: "Files overlap partially",
    RecommendedAction.CREATE: "Files are unrelated",
}

_STEPS = {
    RecommendedAction.DUPLICATE: (
        "Keep one copy and remove the other",
        "Point references at the kept copy",
    ),
    RecommendedAction.UPDATE: (
        "Apply the new content to the existing file",
        "Retire the older file once references are updated",
    ),
    RecommendedAction.MERGE: (
        "Combine the unique parts of both files",
        "Keep the merged file under the more descriptive name",
    ),
    RecommendedAction.REVIEW: (
        "Compare both files side by side",
        "Decide whether they should reference each other",
    ),
    RecommendedAction.CREATE: ("Create the new file as-is",),
}

# How many of the strongest layers the reason mentions.
_MAX_NAMED_LAYERS = 2


class Recommender:
    """
    Maps an overall score onto the threshold ladder.

    Between `similar` and `identical` the action is `update` when both files
    carry a modification time and the target's is strictly newer than the
    source's; otherwise `merge`.
    """

    def __init__(self, thresholds: Thresholds) -> None:
        self._thresholds = thresholds

    def action_for(
        self, score: float, source: FileDescriptor, target: FileDescriptor
    ) -> RecommendedAction:
        t = self._thresholds
        if score >= t.identical:
            return RecommendedAction.DUPLICATE
        if score >= t.similar:
            if _target_is_newer(source, target):
                return RecommendedAction.UPDATE
            return RecommendedAction.MERGE
        if score >= t.different:
            return RecommendedAction.REVIEW
        return RecommendedAction.CREATE

    def recommend(
        self,
        score: float,
        confidence: float,
        layers: Mapping[str, LayerScore],
        weights: Mapping[str, float],
        source: FileDescriptor,
        target: FileDescriptor,
    ) -> Recommendation:
        action = self.action_for(score, source, target)
        return Recommendation(
            action=action,
            confidence=confidence,
            reason=self._reason(action, score, layers, weights),
            involved_files=(source.path, target.path),
            suggested_steps=_STEPS[action],
        )

    def _reason(
        self,
        action: RecommendedAction,
        score: float,
        layers: Mapping[str, LayerScore],
        weights: Mapping[str, float],
    ) -> str:
        contributions = [
            (weights.get(name, 0.0) * s.score, name) for name, s in layers.items()
        ]
        # Highest contribution first; name breaks ties so the text is stable.
        ranked = sorted((c for c in contributions if c[0] > 0), key=lambda c: (-c[0], c[1]))
        summary = f"{_SUMMARIES[action]} (score {score:.2f})"
        if not ranked:
            return f"{summary}; no layer reported similarity"
        named = ", ".join(f"{name} {value:.2f}" for value, name in ranked[:_MAX_NAMED_LAYERS])
        return f"{summary}; strongest signal: {named}"


def _target_is_newer(source: FileDescriptor, target: FileDescriptor) -> bool:
    src = source.metadata.modified_ns
    tgt = target.metadata.modified_ns
    return src is not None and tgt is not None and tgt > src
