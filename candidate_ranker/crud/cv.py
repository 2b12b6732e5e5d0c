"""
CV CRUD
"""
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from candidate_ranker.models.candidate import CV
from .base import CRUDBase


class CRUDCV(CRUDBase[CV]):
    """CVs are insert-only"""

    async def create_cv(
        self,
        db: AsyncSession,
        *,
        candidate_id: str,
        content: str,
        generated_by: str,
        prompt: Optional[str] = None
    ) -> CV:
        cv = CV(candidate_id=candidate_id, content=content, prompt=prompt, generated_by=generated_by)
        db.add(cv)
        await db.flush()
        return cv

    async def get_latest(self, db: AsyncSession, candidate_id: str) -> Optional[CV]:
        result = await db.execute(
            select(self.model)
            .where(self.model.candidate_id == candidate_id)
            .order_by(self.model.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()


cv_crud = CRUDCV(CV)
