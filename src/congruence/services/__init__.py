from .aggregator import aggregate, is_identical
from .orchestrator import LayerOrchestrator, LayerRun
from .ranking import rank_results
from .recommender import Recommender
from .result_cache import ResultCache, pair_key
from .similarity_service import SimilarityService


__all__ = [
    'aggregate',
    'is_identical',
    'LayerOrchestrator',
    'LayerRun',
    'rank_results',
    'Recommender',
    'ResultCache',
    'pair_key',
    'SimilarityService',
]
