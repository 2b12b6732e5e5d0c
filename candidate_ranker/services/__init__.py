"""
Services

Orchestration on top of the CRUD layer and the classifier gateway.
"""
from .identity import IdentityResolver
from .ranking import RankingReconciler, RankingRun
from .generation import BatchGenerationPipeline

__all__ = [
    "IdentityResolver",
    "RankingReconciler",
    "RankingRun",
    "BatchGenerationPipeline",
]
