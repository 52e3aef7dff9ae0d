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

"""Immutable, validated configuration for the similarity service."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Mapping

from .errors import ConfigurationError

LAYER_NAMES: tuple[str, ...] = ("filename", "structure", "semantic", "content")

# Tolerance on the weight total; weights are meant to sum to 1.
WEIGHT_EPSILON = 1e-6


@dataclass(frozen=True)
class Thresholds:
    """
    Attributes:
        identical: Score at or above which a pair is a duplicate.
        similar: Score at or above which a pair is a merge/update candidate.
        different: Score below which a pair is unrelated.
    """

    identical: float = 0.95
    similar: float = 0.7
    different: float = 0.3

    def to_dict(self) -> dict[str, Any]:
        return {"identical": self.identical, "similar": self.similar, "different": self.different}


@dataclass(frozen=True)
class PerformanceSettings:
    """
    Attributes:
        max_analysis_time_ms: Budget shared by all layers of one comparison.
        enable_cache: Memoize pairwise results.
        cache_ttl_ms: Age after which a cached result is stale; 0 never expires.
        max_cache_entries: Bound on cached pairs; oldest entries go first.
        max_workers: Size of the layer thread pool.
    """

    max_analysis_time_ms: int = 5000
    enable_cache: bool = True
    cache_ttl_ms: int = 300_000
    max_cache_entries: int = 1000
    max_workers: int = 8

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_analysis_time_ms": self.max_analysis_time_ms,
            "enable_cache": self.enable_cache,
            "cache_ttl_ms": self.cache_ttl_ms,
            "max_cache_entries": self.max_cache_entries,
            "max_workers": self.max_workers,
        }


def _default_weights() -> Mapping[str, float]:
    return {"filename": 0.2, "structure": 0.3, "semantic": 0.3, "content": 0.2}


def _default_enabled() -> Mapping[str, bool]:
    return {name: True for name in LAYER_NAMES}


@dataclass(frozen=True)
class SimilarityConfig:
    """
    Attributes:
        layer_weights: Layer name -> weight in [0, 1]; total at most 1.
        enabled_layers: Layer name -> bool; absent names are disabled.
        thresholds: Recommendation ladder.
        performance: Timeout, cache and pool settings.
        file_type_weights: Extension (".md") -> partial weight overrides used
            when both files share that extension.
        max_content_size: Largest file (bytes) whose content loaders attach.

    Construction validates; an invalid instance never exists.
    """

    layer_weights: Mapping[str, float] = field(default_factory=_default_weights)
    enabled_layers: Mapping[str, bool] = field(default_factory=_default_enabled)
    thresholds: Thresholds = field(default_factory=Thresholds)
    performance: PerformanceSettings = field(default_factory=PerformanceSettings)
    file_type_weights: Mapping[str, Mapping[str, float]] = field(default_factory=dict)
    max_content_size: int = 1024 * 1024

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "layer_weights",
            MappingProxyType({str(k): v for k, v in self.layer_weights.items()}),
        )
        object.__setattr__(
            self,
            "enabled_layers",
            MappingProxyType({str(k): v for k, v in self.enabled_layers.items()}),
        )
        object.__setattr__(
            self,
            "file_type_weights",
            MappingProxyType(
                {
                    _normalize_extension(ext): MappingProxyType(dict(overrides))
                    for ext, overrides in self.file_type_weights.items()
                }
            ),
        )
        _check(self)

    def is_enabled(self, layer_name: str) -> bool:
        return bool(self.enabled_layers.get(layer_name, False))

    def weights_for(self, ext_a: str, ext_b: str) -> Mapping[str, float]:
        """Weights for a pair, honouring per-extension overrides."""
        ext_a = _normalize_extension(ext_a)
        if ext_a and ext_a == _normalize_extension(ext_b) and ext_a in self.file_type_weights:
            merged = dict(self.layer_weights)
            merged.update(self.file_type_weights[ext_a])
            return merged
        return self.layer_weights

    def to_dict(self) -> dict[str, Any]:
        return {
            "layer_weights": dict(self.layer_weights),
            "enabled_layers": dict(self.enabled_layers),
            "thresholds": self.thresholds.to_dict(),
            "performance": self.performance.to_dict(),
            "file_type_weights": {
                ext: dict(overrides) for ext, overrides in self.file_type_weights.items()
            },
            "max_content_size": self.max_content_size,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SimilarityConfig:
        """Build a config from plain data; missing keys take defaults."""
        return merge_config(DEFAULT_CONFIG, data)


def _normalize_extension(ext: str) -> str:
    ext = str(ext or "").lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _check_weights(weights: Mapping[str, Any], where: str) -> None:
    total = 0.0
    for name, weight in weights.items():
        if not _is_number(weight):
            raise ConfigurationError(f"{where}: weight for '{name}' must be a number, got {weight!r}")
        if not 0.0 <= weight <= 1.0:
            raise ConfigurationError(f"{where}: weight for '{name}' must be in [0.0, 1.0], got {weight}")
        total += weight
    if total > 1.0 + WEIGHT_EPSILON:
        raise ConfigurationError(f"{where}: weights must sum to at most 1.0, got {total:.6f}")


def _check(config: SimilarityConfig) -> None:
    _check_weights(config.layer_weights, "layer_weights")
    for ext, overrides in config.file_type_weights.items():
        if not ext or ext == ".":
            raise ConfigurationError("file_type_weights: empty extension")
        merged = dict(config.layer_weights)
        merged.update(overrides)
        _check_weights(merged, f"file_type_weights[{ext}]")

    for name, flag in config.enabled_layers.items():
        if not isinstance(flag, bool):
            raise ConfigurationError(f"enabled_layers: '{name}' must be a bool, got {flag!r}")

    t = config.thresholds
    for label in ("identical", "similar", "different"):
        value = getattr(t, label)
        if not _is_number(value) or not 0.0 <= value <= 1.0:
            raise ConfigurationError(f"thresholds.{label} must be in [0.0, 1.0], got {value!r}")
    if not t.identical >= t.similar >= t.different:
        raise ConfigurationError(
            "thresholds must satisfy identical >= similar >= different, got "
            f"{t.identical} / {t.similar} / {t.different}"
        )

    p = config.performance
    if not isinstance(p.enable_cache, bool):
        raise ConfigurationError(f"performance.enable_cache must be a bool, got {p.enable_cache!r}")
    for label, minimum in (
        ("max_analysis_time_ms", 1),
        ("cache_ttl_ms", 0),
        ("max_cache_entries", 1),
        ("max_workers", 1),
    ):
        value = getattr(p, label)
        if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
            raise ConfigurationError(f"performance.{label} must be an integer >= {minimum}, got {value!r}")

    size = config.max_content_size
    if not isinstance(size, int) or isinstance(size, bool) or size < 0:
        raise ConfigurationError(f"max_content_size must be an integer >= 0, got {size!r}")


def validate_config(config: SimilarityConfig) -> SimilarityConfig:
    """Re-check a config and return it; raise ConfigurationError otherwise."""
    if not isinstance(config, SimilarityConfig):
        raise ConfigurationError(f"expected SimilarityConfig, got {type(config).__name__}")
    _check(config)
    return config


def _merge_section(current: Any, partial: Any, label: str) -> Any:
    if not isinstance(partial, Mapping):
        raise ConfigurationError(f"{label} must be a mapping, got {type(partial).__name__}")
    known = {f.name for f in fields(current)}
    unknown = set(partial) - known
    if unknown:
        raise ConfigurationError(f"unknown {label} key(s): {', '.join(sorted(unknown))}")
    return replace(current, **partial)


def merge_config(base: SimilarityConfig, partial: Mapping[str, Any]) -> SimilarityConfig:
    """
    Overlay a partial update on `base` and return a new validated config.

    Mapping sections (weights, enabled layers, per-type weights) are merged key
    by key; threshold and performance sections field by field. `base` is never
    modified, so a failed merge leaves it as the active configuration.
    """
    if isinstance(partial, SimilarityConfig):
        return validate_config(partial)
    if not isinstance(partial, Mapping):
        raise ConfigurationError(f"config update must be a mapping, got {type(partial).__name__}")

    known = {f.name for f in fields(SimilarityConfig)}
    unknown = set(partial) - known
    if unknown:
        raise ConfigurationError(f"unknown config key(s): {', '.join(sorted(unknown))}")

    changes: dict[str, Any] = {}
    for key in ("layer_weights", "enabled_layers"):
        if key in partial:
            if not isinstance(partial[key], Mapping):
                raise ConfigurationError(f"{key} must be a mapping")
            merged = dict(getattr(base, key))
            merged.update(partial[key])
            changes[key] = merged
    if "file_type_weights" in partial:
        if not isinstance(partial["file_type_weights"], Mapping):
            raise ConfigurationError("file_type_weights must be a mapping")
        merged_types = {ext: dict(o) for ext, o in base.file_type_weights.items()}
        for ext, overrides in partial["file_type_weights"].items():
            if not isinstance(overrides, Mapping):
                raise ConfigurationError(f"file_type_weights[{ext}] must be a mapping")
            merged_types.setdefault(_normalize_extension(ext), {}).update(overrides)
        changes["file_type_weights"] = merged_types
    if "thresholds" in partial:
        changes["thresholds"] = _merge_section(base.thresholds, partial["thresholds"], "thresholds")
    if "performance" in partial:
        changes["performance"] = _merge_section(base.performance, partial["performance"], "performance")
    if "max_content_size" in partial:
        changes["max_content_size"] = partial["max_content_size"]

    try:
        return replace(base, **changes)
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigurationError(f"invalid config value: {e}") from e


DEFAULT_CONFIG = SimilarityConfig()
