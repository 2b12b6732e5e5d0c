"""
Candidate API routes
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from candidate_ranker.agents.classifier import CandidateClassifier, get_classifier
from candidate_ranker.core.database import get_db
from candidate_ranker.core.exceptions import NotFoundException, ConflictException
from candidate_ranker.core.response import success_response, paged_response
from candidate_ranker.core.security import require_api_key, ai_rate_limit
from candidate_ranker.crud import candidate_crud, cv_crud, ranking_crud, skill_crud
from candidate_ranker.models import (
    CandidateCreate,
    CandidateResponse,
    CVResponse,
    GenerateRequest,
)
from candidate_ranker.services import BatchGenerationPipeline

router = APIRouter()


@router.get("", summary="List candidates")
async def get_candidates(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    keyword: Optional[str] = Query(None, description="Search in name or email"),
    skill: Optional[str] = Query(None, description="Only candidates with this skill"),
    db: AsyncSession = Depends(get_db),
):
    """
    Newest candidates first, each with skills, latest CV and current ranking
    """
    skip = (page - 1) * page_size
    candidates = await candidate_crud.get_list(db, keyword=keyword, skill=skill, skip=skip, limit=page_size)
    total = await candidate_crud.count_filtered(db, keyword=keyword, skill=skill)
    rankings = await ranking_crud.get_current_for_candidates(db, [c.id for c in candidates])

    items = [
        CandidateResponse.from_candidate(c, rankings.get(c.id)).model_dump()
        for c in candidates
    ]
    return paged_response(items, total, page, page_size)


@router.post("", summary="Create candidate")
async def create_candidate(
    data: CandidateCreate,
    db: AsyncSession = Depends(get_db),
):
    existing = await candidate_crud.get_by_email(db, data.email)
    if existing:
        raise ConflictException(f"A candidate with email {existing.email} already exists")

    candidate = await candidate_crud.create_with_skills(db, obj_in=data.model_dump())
    return success_response(
        data=CandidateResponse.from_candidate(candidate).model_dump(),
        message="Candidate created",
        code=201,
    )


@router.post(
    "/generate",
    summary="Generate candidates with AI",
    dependencies=[Depends(require_api_key), Depends(ai_rate_limit)],
)
async def generate_candidates(
    data: GenerateRequest,
    db: AsyncSession = Depends(get_db),
    classifier: CandidateClassifier = Depends(get_classifier),
):
    """
    Generate ``count`` candidates with CVs. All or nothing: a failure part
    way removes the candidates this request already created.
    """
    result = await BatchGenerationPipeline(db, classifier).generate(data.count)
    return success_response(
        data=result.model_dump(),
        message=f"Generated {result.generated} candidates",
        code=201,
    )


@router.get("/skills", summary="Skill catalog")
async def get_skills(db: AsyncSession = Depends(get_db)):
    """All known skill names, for the skill filter"""
    return success_response(data=await skill_crud.get_names(db))


@router.get("/{candidate_id}", summary="Candidate detail")
async def get_candidate(
    candidate_id: str,
    db: AsyncSession = Depends(get_db),
):
    candidate = await candidate_crud.get_with_relations(db, candidate_id)
    if not candidate:
        raise NotFoundException(f"Candidate not found: {candidate_id}")

    rankings = await ranking_crud.get_current_for_candidates(db, [candidate.id])
    return success_response(
        data=CandidateResponse.from_candidate(candidate, rankings.get(candidate.id)).model_dump()
    )


@router.get("/{candidate_id}/cv", summary="Latest CV")
async def get_candidate_cv(
    candidate_id: str,
    db: AsyncSession = Depends(get_db),
):
    if not await candidate_crud.get(db, candidate_id):
        raise NotFoundException(f"Candidate not found: {candidate_id}")

    cv = await cv_crud.get_latest(db, candidate_id)
    if not cv:
        raise NotFoundException(f"No CV found for candidate: {candidate_id}")
    return success_response(data=CVResponse.model_validate(cv).model_dump())


@router.delete("/{candidate_id}", summary="Delete candidate")
async def delete_candidate(
    candidate_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Removes the candidate with its skill links, CVs and rankings"""
    deleted = await candidate_crud.delete(db, id=candidate_id)
    if not deleted:
        raise NotFoundException(f"Candidate not found: {candidate_id}")
    return success_response(message="Candidate deleted")
