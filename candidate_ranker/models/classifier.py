"""
Classifier data contracts

What goes to and comes back from the LLM, plus the generation request and
result schemas. None of these are tables.

LLM answers use camelCase or snake_case keys depending on the prompt and the
model, so the inbound models accept both.
"""
from typing import Optional, List
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from candidate_ranker.core.config import settings
from .candidate import dedupe_names
from .ranking import MIN_SCORE, MAX_SCORE


class ClassifierModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ==================== Inbound (LLM -> us) ====================

class CandidateProfile(ClassifierModel):
    """An AI-authored candidate profile"""
    first_name: str = Field(..., min_length=1, max_length=100, validation_alias=AliasChoices("first_name", "firstName"))
    last_name: str = Field(..., min_length=1, max_length=100, validation_alias=AliasChoices("last_name", "lastName"))
    email: str = Field(..., min_length=3, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    years_of_exp: int = Field(
        ...,
        ge=0,
        le=60,
        validation_alias=AliasChoices("years_of_exp", "yearsOfExp", "years_of_experience"),
    )
    skills: List[str] = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def require_at_sign(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v

    @field_validator("skills")
    @classmethod
    def clean_skills(cls, v: List[str]) -> List[str]:
        cleaned = dedupe_names(v)
        if not cleaned:
            raise ValueError("At least one skill is required")
        return cleaned

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Verdict(ClassifierModel):
    """One candidate's verdict from a ranking call"""
    candidate_id: str = Field(..., min_length=1, validation_alias=AliasChoices("candidate_id", "candidateId", "id"))
    score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE)
    should_interview: bool = Field(
        ...,
        validation_alias=AliasChoices("should_interview", "shouldInterview", "interview"),
    )
    reasoning: str = Field(..., min_length=1)


class GeneratedCV(ClassifierModel):
    content: str
    prompt: Optional[str] = None


# ==================== Outbound (us -> LLM) ====================

class CandidateSummary(ClassifierModel):
    """What the ranking prompt sees of a candidate"""
    id: str
    name: str
    years_of_exp: int
    skills: List[str] = Field(default_factory=list)

    def to_prompt_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "experience": self.years_of_exp,
            "skills": self.skills,
        }


# ==================== Generation API ====================

class GenerateRequest(ClassifierModel):
    count: int = Field(..., ge=1, le=settings.generation_max_count, description="Number of candidates to generate")


class GenerationRecord(ClassifierModel):
    candidate_id: str
    name: str
    cv_id: str


class BatchGenerationResult(ClassifierModel):
    requested: int
    generated: int
    candidates: List[GenerationRecord] = Field(default_factory=list)
