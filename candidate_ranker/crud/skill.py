"""
Skill catalog CRUD
"""
from typing import Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from candidate_ranker.models.candidate import Skill
from .base import CRUDBase


class CRUDSkill(CRUDBase[Skill]):
    """Skills are created on first reference and never deleted here"""

    async def get_by_name(self, db: AsyncSession, name: str) -> Optional[Skill]:
        """Case-insensitive lookup"""
        result = await db.execute(
            select(self.model).where(func.lower(self.model.name) == name.strip().lower())
        )
        return result.scalars().first()

    async def get_or_create(
        self,
        db: AsyncSession,
        name: str,
        *,
        category: str = "technical"
    ) -> Skill:
        skill = await self.get_by_name(db, name)
        if skill is not None:
            return skill
        skill = Skill(name=name.strip(), category=category)
        db.add(skill)
        await db.flush()
        return skill

    async def get_names(self, db: AsyncSession) -> list[str]:
        """All catalog names, alphabetical (feeds the skill filter)"""
        result = await db.execute(select(self.model.name).order_by(self.model.name))
        return list(result.scalars().all())


skill_crud = CRUDSkill(Skill)
