# Licensed under the Apache License, Version 2.0
"""Composition root: the shipped layers wired into a SimilarityService."""

from typing import List, Optional

from .adapters.similarity.filename_layer import FilenameLayer
from .adapters.similarity.semantic_layer import SemanticLayer
from .adapters.similarity.ssdeep_adapter import SsdeepContentLayer
from .adapters.similarity.structure_layer import StructureLayer
from .domain.config import SimilarityConfig
from .ports.layer import SimilarityLayer
from .services import SimilarityService


def default_layers() -> List[SimilarityLayer]:
    """Filename, structure, semantic and content layers, in that order."""
    return [FilenameLayer(), StructureLayer(), SemanticLayer(), SsdeepContentLayer()]


def create_default_service(config: Optional[SimilarityConfig] = None) -> SimilarityService:
    return SimilarityService(config=config, layers=default_layers())
