from .config import (
    DEFAULT_CONFIG,
    LAYER_NAMES,
    PerformanceSettings,
    SimilarityConfig,
    Thresholds,
    merge_config,
    validate_config,
)
from .errors import (
    AnalysisError,
    AnalysisTimeoutError,
    ConfigurationError,
    CongruenceError,
    FilesystemError,
    LayerError,
    ServiceClosedError,
)
from .models import (
    BatchResult,
    FileDescriptor,
    FileMetadata,
    LayerScore,
    Recommendation,
    RecommendedAction,
    ResultMetadata,
    SimilarityResult,
)

__all__ = [
    "DEFAULT_CONFIG",
    "LAYER_NAMES",
    "PerformanceSettings",
    "SimilarityConfig",
    "Thresholds",
    "merge_config",
    "validate_config",
    "AnalysisError",
    "AnalysisTimeoutError",
    "ConfigurationError",
    "CongruenceError",
    "FilesystemError",
    "LayerError",
    "ServiceClosedError",
    "BatchResult",
    "FileDescriptor",
    "FileMetadata",
    "LayerScore",
    "Recommendation",
    "RecommendedAction",
    "ResultMetadata",
    "SimilarityResult",
]
