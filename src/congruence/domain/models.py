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

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import PurePath
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple


@dataclass(frozen=True)
class FileMetadata:
    """Size, type and timestamp information supplied by the caller."""
    size: int = 0
    extension: str = ""
    mime_type: Optional[str] = None
    modified_ns: Optional[int] = None


@dataclass(frozen=True)
class FileDescriptor:
    """
    A file as seen by the engine: an identifying path, optional text content
    and metadata. The engine never reads the disk; callers load content.
    """
    path: str
    content: Optional[str] = None
    metadata: FileMetadata = field(default_factory=FileMetadata)

    @property
    def name(self) -> str:
        return PurePath(self.path).name

    @property
    def extension(self) -> str:
        ext = self.metadata.extension or PurePath(self.path).suffix
        ext = ext.lower()
        if ext and not ext.startswith("."):
            ext = "." + ext
        return ext

    @property
    def stem(self) -> str:
        name = self.name
        dot = name.rfind(".")
        return name[:dot] if dot > 0 else name


@dataclass(frozen=True)
class LayerScore:
    """Outcome of one layer for one comparison."""
    score: float
    confidence: float
    explanation: str = ""
    breakdown: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for label, value in (("score", self.score), ("confidence", self.confidence)):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{label} must be in [0.0, 1.0], got {value}")
        object.__setattr__(self, "breakdown", MappingProxyType(dict(self.breakdown)))

    @classmethod
    def zero(cls, explanation: str = "") -> LayerScore:
        return cls(score=0.0, confidence=0.0, explanation=explanation)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "confidence": self.confidence,
            "explanation": self.explanation,
            "breakdown": dict(self.breakdown),
        }


class RecommendedAction(str, Enum):
    CREATE = "create"
    REVIEW = "review"
    UPDATE = "update"
    MERGE = "merge"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class Recommendation:
    action: RecommendedAction
    confidence: float
    reason: str
    involved_files: Tuple[str, ...]
    suggested_steps: Tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "confidence": self.confidence,
            "reason": self.reason,
            "involved_files": list(self.involved_files),
            "suggested_steps": list(self.suggested_steps),
        }


@dataclass(frozen=True)
class ResultMetadata:
    analysis_time: datetime
    processing_time_ms: float
    algorithms_used: Tuple[str, ...]
    source_file: str
    target_file: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysis_time": self.analysis_time.isoformat(),
            "processing_time_ms": self.processing_time_ms,
            "algorithms_used": list(self.algorithms_used),
            "source_file": self.source_file,
            "target_file": self.target_file,
        }


@dataclass(frozen=True)
class SimilarityResult:
    """
    Verdict for one file pair. Immutable, so a cached instance can be handed
    to any number of threads.
    """
    overall_score: float
    overall_confidence: float
    layers: Mapping[str, LayerScore]
    recommendation: Recommendation
    metadata: ResultMetadata

    def __post_init__(self) -> None:
        object.__setattr__(self, "layers", MappingProxyType(dict(self.layers)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall_score": self.overall_score,
            "overall_confidence": self.overall_confidence,
            "layers": {name: s.to_dict() for name, s in self.layers.items()},
            "recommendation": self.recommendation.to_dict(),
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class BatchResult:
    """One target ranked against many candidates, best first."""
    new_file: str
    similarities: Tuple[SimilarityResult, ...] = ()
    best_match: Optional[SimilarityResult] = None
    potential_duplicates: Tuple[SimilarityResult, ...] = ()
    total_analysis_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "new_file": self.new_file,
            "similarities": [r.to_dict() for r in self.similarities],
            "best_match": self.best_match.to_dict() if self.best_match else None,
            "potential_duplicates": [r.to_dict() for r in self.potential_duplicates],
            "total_analysis_time_ms": self.total_analysis_time_ms,
        }
