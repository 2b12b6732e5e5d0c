"""
Candidate, skill catalog and CV models - SQLModel version

Table models and their request / response schemas live side by side.
"""
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING
from pydantic import EmailStr, field_validator
from sqlmodel import SQLModel, Field, Relationship, UniqueConstraint
from sqlalchemy import Column as SAColumn, String, Text, ForeignKey

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse, utcnow

if TYPE_CHECKING:
    from .ranking import Ranking


# ==================== Base fields ====================

class CandidateBase(SQLModelBase):
    """Fields shared by the candidate table and its create schema"""
    first_name: str = Field(..., min_length=1, max_length=100, description="First name")
    last_name: str = Field(..., min_length=1, max_length=100, description="Last name")
    phone: Optional[str] = Field(None, max_length=50, description="Phone number")
    years_of_exp: int = Field(0, ge=0, description="Years of experience")


# ==================== Table models ====================

class Skill(IDMixin, SQLModel, table=True):
    """Deduplicated skill catalog"""
    __tablename__ = "skills"

    name: str = Field(..., max_length=100, unique=True, index=True, description="Skill name")
    category: str = Field("technical", max_length=50, description="Skill category")

    candidate_links: List["CandidateSkill"] = Relationship(back_populates="skill")

    def __repr__(self) -> str:
        return f"<Skill(id={self.id}, name={self.name})>"


class CandidateSkill(IDMixin, SQLModel, table=True):
    """Candidate <-> skill join table"""
    __tablename__ = "candidate_skills"
    __table_args__ = (
        UniqueConstraint("candidate_id", "skill_id", name="uq_candidate_skill"),
    )

    candidate_id: str = Field(
        sa_column=SAColumn(String(36), ForeignKey("candidates.id", ondelete="CASCADE"), index=True, nullable=False),
        description="Candidate ID"
    )
    skill_id: str = Field(
        sa_column=SAColumn(String(36), ForeignKey("skills.id"), index=True, nullable=False),
        description="Skill ID"
    )

    candidate: Optional["Candidate"] = Relationship(back_populates="skill_links")
    skill: Optional[Skill] = Relationship(
        back_populates="candidate_links",
        sa_relationship_kwargs={"lazy": "selectin"}
    )


class Candidate(CandidateBase, TimestampMixin, IDMixin, table=True):
    """Candidate table model"""
    __tablename__ = "candidates"

    # stored lower-cased, which makes the unique index case-insensitive
    email: str = Field(..., max_length=255, unique=True, index=True, description="Email")

    skill_links: List[CandidateSkill] = Relationship(
        back_populates="candidate",
        sa_relationship_kwargs={"lazy": "selectin", "cascade": "all, delete-orphan", "passive_deletes": True}
    )
    cvs: List["CV"] = Relationship(
        back_populates="candidate",
        sa_relationship_kwargs={
            "lazy": "selectin",
            "cascade": "all, delete-orphan",
            "passive_deletes": True,
            "order_by": "CV.created_at.desc()",
        }
    )
    rankings: List["Ranking"] = Relationship(
        back_populates="candidate",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "passive_deletes": True}
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def skill_names(self) -> List[str]:
        return [link.skill.name for link in self.skill_links if link.skill is not None]

    @property
    def latest_cv(self) -> Optional["CV"]:
        return self.cvs[0] if self.cvs else None

    def __repr__(self) -> str:
        return f"<Candidate(id={self.id}, email={self.email})>"


class CV(IDMixin, SQLModel, table=True):
    """Generated CV; never modified after creation"""
    __tablename__ = "cvs"

    candidate_id: str = Field(
        sa_column=SAColumn(String(36), ForeignKey("candidates.id", ondelete="CASCADE"), index=True, nullable=False),
        description="Candidate ID"
    )
    content: str = Field(sa_column=SAColumn(Text, nullable=False), description="CV document")
    prompt: Optional[str] = Field(default=None, sa_column=SAColumn(Text, nullable=True), description="Generation prompt")
    generated_by: str = Field(..., max_length=100, description="Generating model")
    created_at: datetime = Field(default_factory=utcnow, nullable=False, index=True, description="Creation time")

    candidate: Optional[Candidate] = Relationship(back_populates="cvs")

    def __repr__(self) -> str:
        return f"<CV(id={self.id}, candidate_id={self.candidate_id})>"


# ==================== Request schemas ====================

class CandidateCreate(CandidateBase):
    """Create a candidate by direct input"""
    email: EmailStr = Field(..., description="Email")
    skills: List[str] = Field(..., min_length=1, description="Skill names")

    @field_validator("skills")
    @classmethod
    def clean_skills(cls, v: List[str]) -> List[str]:
        cleaned = dedupe_names(v)
        if not cleaned:
            raise ValueError("At least one skill is required")
        return cleaned


def dedupe_names(names: List[str]) -> List[str]:
    """Strip, drop blanks and drop case-insensitive duplicates, keeping order"""
    seen = set()
    result = []
    for name in names:
        name = (name or "").strip()
        if name and name.lower() not in seen:
            seen.add(name.lower())
            result.append(name)
    return result


# ==================== Response schemas ====================

class SkillResponse(SQLModelBase):
    id: str
    name: str
    category: str


class CVBrief(SQLModelBase):
    """CV metadata without the document body"""
    id: str
    generated_by: str
    created_at: datetime


class CVResponse(CVBrief):
    candidate_id: str
    content: str
    prompt: Optional[str] = None


class RankingBrief(SQLModelBase):
    """The candidate's verdict in the current ranking epoch"""
    epoch_id: int
    score: int
    priority: int
    should_interview: bool
    reasoning: str
    criteria: str
    ranked_at: datetime


class CandidateResponse(TimestampResponse):
    """Candidate with skills, latest CV and current ranking"""
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: Optional[str]
    years_of_exp: int
    skills: List[SkillResponse] = Field(default_factory=list)
    latest_cv: Optional[CVBrief] = None
    current_ranking: Optional[RankingBrief] = None

    @classmethod
    def from_candidate(cls, candidate: Candidate, current_ranking=None) -> "CandidateResponse":
        return cls(
            id=candidate.id,
            created_at=candidate.created_at,
            updated_at=candidate.updated_at,
            first_name=candidate.first_name,
            last_name=candidate.last_name,
            full_name=candidate.full_name,
            email=candidate.email,
            phone=candidate.phone,
            years_of_exp=candidate.years_of_exp,
            skills=[
                SkillResponse.model_validate(link.skill)
                for link in candidate.skill_links
                if link.skill is not None
            ],
            latest_cv=CVBrief.model_validate(candidate.latest_cv) if candidate.latest_cv else None,
            current_ranking=RankingBrief.model_validate(current_ranking) if current_ranking else None,
        )
