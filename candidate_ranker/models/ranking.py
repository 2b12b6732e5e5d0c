"""
Ranking models - SQLModel version

Every "rank all" run commits one RankingEpoch; its id is stamped on each
Ranking row and reads are filtered to the newest epoch.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import field_validator
from sqlmodel import SQLModel, Field, Relationship, UniqueConstraint
from sqlalchemy import Column as SAColumn, Integer, String, Text, ForeignKey

from candidate_ranker.core.config import settings
from .base import SQLModelBase, IDMixin, utcnow
from .candidate import Candidate

MIN_SCORE = 0
MAX_SCORE = 100


# ==================== Table models ====================

class RankingEpoch(SQLModel, table=True):
    """One committed ranking run"""
    __tablename__ = "ranking_epochs"

    id: Optional[int] = Field(default=None, primary_key=True, description="Monotonic epoch version")
    criteria: str = Field(..., max_length=500, description="Criteria the run ranked against")
    candidate_count: int = Field(0, ge=0, description="Number of ranked candidates")
    created_at: datetime = Field(default_factory=utcnow, nullable=False, description="Commit time")

    def __repr__(self) -> str:
        return f"<RankingEpoch(id={self.id}, candidates={self.candidate_count})>"


class Ranking(IDMixin, SQLModel, table=True):
    """A candidate's verdict within one epoch"""
    __tablename__ = "rankings"
    __table_args__ = (
        UniqueConstraint("epoch_id", "priority", name="uq_ranking_epoch_priority"),
        UniqueConstraint("epoch_id", "candidate_id", name="uq_ranking_epoch_candidate"),
    )

    candidate_id: str = Field(
        sa_column=SAColumn(String(36), ForeignKey("candidates.id", ondelete="CASCADE"), index=True, nullable=False),
        description="Candidate ID"
    )
    epoch_id: int = Field(
        sa_column=SAColumn(Integer, ForeignKey("ranking_epochs.id", ondelete="CASCADE"), index=True, nullable=False),
        description="Ranking epoch"
    )
    score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE, index=True, description="Score, higher is better")
    reasoning: str = Field(sa_column=SAColumn(Text, nullable=False), description="Reasoning")
    criteria: str = Field(..., max_length=500, description="Criteria used")
    should_interview: bool = Field(False, index=True, description="Interview recommendation")
    priority: int = Field(..., ge=1, description="1 is the best candidate of the epoch")
    ranked_at: datetime = Field(default_factory=utcnow, nullable=False, description="Ranking time")

    candidate: Optional[Candidate] = Relationship(
        back_populates="rankings",
        sa_relationship_kwargs={"lazy": "selectin"}
    )

    def __repr__(self) -> str:
        return f"<Ranking(candidate_id={self.candidate_id}, epoch={self.epoch_id}, priority={self.priority})>"


# ==================== Request schemas ====================

class RankRequest(SQLModelBase):
    """Run a ranking; blank criteria falls back to the configured default"""
    criteria: Optional[str] = Field(None, max_length=settings.criteria_max_length, description="Position or criteria to rank against")

    @field_validator("criteria")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


# ==================== Response schemas ====================

class RankedCandidate(SQLModelBase):
    """Candidate fields embedded in a ranking"""
    id: str
    first_name: str
    last_name: str
    email: str
    years_of_exp: int
    skills: List[str] = Field(default_factory=list)


class RankingResponse(SQLModelBase):
    id: str
    candidate_id: str
    epoch_id: int
    score: int
    reasoning: str
    criteria: str
    should_interview: bool
    priority: int
    ranked_at: datetime
    candidate: Optional[RankedCandidate] = None

    @classmethod
    def from_ranking(cls, ranking: Ranking) -> "RankingResponse":
        response = cls(
            id=ranking.id,
            candidate_id=ranking.candidate_id,
            epoch_id=ranking.epoch_id,
            score=ranking.score,
            reasoning=ranking.reasoning,
            criteria=ranking.criteria,
            should_interview=ranking.should_interview,
            priority=ranking.priority,
            ranked_at=ranking.ranked_at,
        )
        if ranking.candidate is not None:
            response.candidate = RankedCandidate(
                id=ranking.candidate.id,
                first_name=ranking.candidate.first_name,
                last_name=ranking.candidate.last_name,
                email=ranking.candidate.email,
                years_of_exp=ranking.candidate.years_of_exp,
                skills=ranking.candidate.skill_names,
            )
        return response


class RankingRunResponse(SQLModelBase):
    """Outcome of one reconciliation run"""
    epoch_id: int
    criteria: str
    total: int
    first_pass: int
    recovered_on_retry: int
    fallback: int
    retried: bool
    rankings: List[RankingResponse] = Field(default_factory=list)


class InterviewSplitResponse(SQLModelBase):
    should_interview: List[RankingResponse] = Field(default_factory=list)
    should_not_interview: List[RankingResponse] = Field(default_factory=list)
