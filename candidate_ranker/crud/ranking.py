"""
Ranking CRUD

Every read is filtered to the current (highest) epoch id, so readers only
ever see one complete epoch.
"""
from dataclasses import dataclass
from typing import Optional, List, Dict, Iterable, Tuple
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from candidate_ranker.models.ranking import Ranking, RankingEpoch
from .base import CRUDBase


@dataclass
class RankingEntry:
    """A reconciled verdict waiting to be committed"""
    candidate_id: str
    score: int
    reasoning: str
    should_interview: bool
    priority: int


class CRUDRanking(CRUDBase[Ranking]):
    """Ranking CRUD operations"""

    def _current_epoch_subquery(self):
        return select(func.max(RankingEpoch.id)).scalar_subquery()

    async def get_current_epoch(self, db: AsyncSession) -> Optional[RankingEpoch]:
        result = await db.execute(
            select(RankingEpoch).order_by(RankingEpoch.id.desc()).limit(1)
        )
        return result.scalars().first()

    async def get_current(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[Ranking]:
        """Current epoch ordered by priority"""
        query = (
            select(self.model)
            .where(self.model.epoch_id == self._current_epoch_subquery())
            .order_by(self.model.priority.asc())
            .offset(skip)
            .execution_options(populate_existing=True)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def count_current(self, db: AsyncSession) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(self.model)
            .where(self.model.epoch_id == self._current_epoch_subquery())
        )
        return result.scalar() or 0

    async def get_current_for_candidates(
        self,
        db: AsyncSession,
        candidate_ids: Iterable[str]
    ) -> Dict[str, Ranking]:
        ids = list(candidate_ids)
        if not ids:
            return {}
        result = await db.execute(
            select(self.model)
            .where(
                self.model.epoch_id == self._current_epoch_subquery(),
                self.model.candidate_id.in_(ids),
            )
        )
        return {r.candidate_id: r for r in result.scalars().all()}

    async def get_interview_split(self, db: AsyncSession) -> Tuple[List[Ranking], List[Ranking]]:
        """
        Partition the current epoch.

        Returns (should_interview by priority ascending,
        should_not_interview by score descending, priority breaking ties).
        """
        rankings = await self.get_current(db)
        should = sorted(
            (r for r in rankings if r.should_interview),
            key=lambda r: r.priority,
        )
        should_not = sorted(
            (r for r in rankings if not r.should_interview),
            key=lambda r: (-r.score, r.priority),
        )
        return should, should_not

    async def replace_all(
        self,
        db: AsyncSession,
        *,
        criteria: str,
        entries: List[RankingEntry]
    ) -> Tuple[RankingEpoch, List[Ranking]]:
        """
        Commit a new epoch and drop every older one in a single transaction.

        Readers filter on the highest epoch id, so until the commit they keep
        seeing the previous epoch and afterwards only the new one.
        """
        try:
            epoch = RankingEpoch(criteria=criteria, candidate_count=len(entries))
            db.add(epoch)
            await db.flush()

            rows = [
                Ranking(
                    candidate_id=entry.candidate_id,
                    epoch_id=epoch.id,
                    score=entry.score,
                    reasoning=entry.reasoning,
                    criteria=criteria,
                    should_interview=entry.should_interview,
                    priority=entry.priority,
                    ranked_at=epoch.created_at,
                )
                for entry in entries
            ]
            db.add_all(rows)
            await db.flush()

            await db.execute(delete(Ranking).where(Ranking.epoch_id != epoch.id))
            await db.execute(delete(RankingEpoch).where(RankingEpoch.id != epoch.id))
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        return epoch, rows


ranking_crud = CRUDRanking(Ranking)
