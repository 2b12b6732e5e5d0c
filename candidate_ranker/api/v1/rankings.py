"""
Ranking API routes
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from candidate_ranker.agents.classifier import CandidateClassifier, get_classifier
from candidate_ranker.core.database import get_db
from candidate_ranker.core.response import success_response, paged_response
from candidate_ranker.core.security import require_api_key, ai_rate_limit
from candidate_ranker.crud import ranking_crud
from candidate_ranker.models import (
    RankRequest,
    RankingResponse,
    RankingRunResponse,
    InterviewSplitResponse,
)
from candidate_ranker.services import RankingReconciler

router = APIRouter()


@router.post(
    "",
    summary="Rank all candidates",
    dependencies=[Depends(require_api_key), Depends(ai_rate_limit)],
)
async def rank_candidates(
    data: Optional[RankRequest] = None,
    db: AsyncSession = Depends(get_db),
    classifier: CandidateClassifier = Depends(get_classifier),
):
    """
    Rank every candidate against ``criteria`` and replace the current ranking.

    Candidates the AI skips are retried once, then stored with a zero score.
    """
    criteria = data.criteria if data else None
    run = await RankingReconciler(db, classifier).rank_all(criteria)

    response = RankingRunResponse(
        epoch_id=run.epoch.id,
        criteria=run.criteria,
        total=run.total,
        first_pass=run.first_pass,
        recovered_on_retry=run.recovered_on_retry,
        fallback=run.fallback,
        retried=run.retried,
        rankings=[RankingResponse.from_ranking(r) for r in run.rankings],
    )
    return success_response(
        data=response.model_dump(),
        message=f"Ranked {run.total} candidates",
    )


@router.get("", summary="Current ranking")
async def get_rankings(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_db),
):
    """Current epoch in priority order"""
    skip = (page - 1) * page_size
    rankings = await ranking_crud.get_current(db, skip=skip, limit=page_size)
    total = await ranking_crud.count_current(db)

    items = [RankingResponse.from_ranking(r).model_dump() for r in rankings]
    return paged_response(items, total, page, page_size)


@router.get("/interview-list", summary="Interview / no-interview split")
async def get_interview_list(db: AsyncSession = Depends(get_db)):
    should, should_not = await ranking_crud.get_interview_split(db)
    response = InterviewSplitResponse(
        should_interview=[RankingResponse.from_ranking(r) for r in should],
        should_not_interview=[RankingResponse.from_ranking(r) for r in should_not],
    )
    return success_response(data=response.model_dump())
