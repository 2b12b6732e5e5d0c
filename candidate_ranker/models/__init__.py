"""
SQLModel models

Table models and request / response schemas
"""
from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse
from .candidate import (
    Candidate, Skill, CandidateSkill, CV,
    CandidateCreate, CandidateResponse, SkillResponse, CVBrief, CVResponse, RankingBrief,
)
from .ranking import (
    RankingEpoch, Ranking,
    RankRequest, RankingResponse, RankedCandidate, RankingRunResponse, InterviewSplitResponse,
    MIN_SCORE, MAX_SCORE,
)
from .classifier import (
    CandidateProfile, Verdict, GeneratedCV, CandidateSummary,
    GenerateRequest, GenerationRecord, BatchGenerationResult,
)

__all__ = [
    # Base
    "SQLModelBase",
    "TimestampMixin",
    "IDMixin",
    "TimestampResponse",
    # Candidate
    "Candidate",
    "Skill",
    "CandidateSkill",
    "CV",
    "CandidateCreate",
    "CandidateResponse",
    "SkillResponse",
    "CVBrief",
    "CVResponse",
    "RankingBrief",
    # Ranking
    "RankingEpoch",
    "Ranking",
    "RankRequest",
    "RankingResponse",
    "RankedCandidate",
    "RankingRunResponse",
    "InterviewSplitResponse",
    "MIN_SCORE",
    "MAX_SCORE",
    # Classifier
    "CandidateProfile",
    "Verdict",
    "GeneratedCV",
    "CandidateSummary",
    "GenerateRequest",
    "GenerationRecord",
    "BatchGenerationResult",
]
