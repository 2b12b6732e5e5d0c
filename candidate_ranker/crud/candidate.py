"""
Candidate CRUD
"""
from typing import Optional, List, Iterable, Any, Dict
from sqlalchemy import select, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from candidate_ranker.models.candidate import Candidate, CandidateSkill, Skill
from .base import CRUDBase
from .skill import skill_crud


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CRUDCandidate(CRUDBase[Candidate]):
    """Candidate CRUD operations"""

    def _with_relations(self):
        return select(self.model).options(
            selectinload(self.model.skill_links).selectinload(CandidateSkill.skill),
            selectinload(self.model.cvs),
        ).execution_options(populate_existing=True)

    async def get_with_relations(
        self,
        db: AsyncSession,
        id: str
    ) -> Optional[Candidate]:
        """Candidate with skills and CVs loaded"""
        result = await db.execute(
            self._with_relations()
            .where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def get_by_email(
        self,
        db: AsyncSession,
        email: str
    ) -> Optional[Candidate]:
        """Emails are unique case-insensitively"""
        result = await db.execute(
            select(self.model).where(func.lower(self.model.email) == normalize_email(email))
        )
        return result.scalars().first()

    async def email_exists(self, db: AsyncSession, email: str) -> bool:
        result = await db.execute(
            select(func.count())
            .select_from(self.model)
            .where(func.lower(self.model.email) == normalize_email(email))
        )
        return (result.scalar() or 0) > 0

    async def get_all_with_skills(self, db: AsyncSession) -> List[Candidate]:
        """Every candidate in a stable order (the ranking population)"""
        result = await db.execute(
            self._with_relations().order_by(self.model.created_at.asc(), self.model.id.asc())
        )
        return list(result.scalars().all())

    async def get_existing_ids(self, db: AsyncSession, ids: Iterable[str]) -> set[str]:
        ids = list(ids)
        if not ids:
            return set()
        result = await db.execute(select(self.model.id).where(self.model.id.in_(ids)))
        return set(result.scalars().all())

    def _filtered(self, query, keyword: Optional[str], skill: Optional[str]):
        if keyword:
            pattern = f"%{keyword.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(self.model.first_name).like(pattern),
                    func.lower(self.model.last_name).like(pattern),
                    func.lower(self.model.email).like(pattern),
                )
            )
        if skill:
            query = query.where(
                self.model.id.in_(
                    select(CandidateSkill.candidate_id)
                    .join(Skill, Skill.id == CandidateSkill.skill_id)
                    .where(func.lower(Skill.name) == skill.strip().lower())
                )
            )
        return query

    async def get_list(
        self,
        db: AsyncSession,
        *,
        keyword: Optional[str] = None,
        skill: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Candidate]:
        """Newest first, optionally filtered by name/email keyword and skill"""
        query = self._filtered(self._with_relations(), keyword, skill)
        query = query.order_by(self.model.created_at.desc(), self.model.id.asc()).offset(skip).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def count_filtered(
        self,
        db: AsyncSession,
        *,
        keyword: Optional[str] = None,
        skill: Optional[str] = None
    ) -> int:
        query = self._filtered(select(func.count()).select_from(self.model), keyword, skill)
        result = await db.execute(query)
        return result.scalar() or 0

    async def create_with_skills(
        self,
        db: AsyncSession,
        *,
        obj_in: Dict[str, Any]
    ) -> Candidate:
        """
        Create a candidate and link its skills.

        ``obj_in`` carries first_name, last_name, email, phone, years_of_exp
        and skills (names). Missing skills are added to the catalog.
        """
        data = dict(obj_in)
        skill_names = data.pop("skills", []) or []
        data["email"] = normalize_email(data["email"])

        skills = {}
        for name in skill_names:
            skill = await skill_crud.get_or_create(db, name)
            skills.setdefault(skill.id, skill)

        candidate = Candidate(**data)
        db.add(candidate)
        for skill in skills.values():
            candidate.skill_links.append(CandidateSkill(skill=skill))

        await db.flush()
        return await self.get_with_relations(db, candidate.id)

    async def delete_many(self, db: AsyncSession, ids: Iterable[str]) -> int:
        """Bulk delete; skill links, CVs and rankings go with them (FK cascade)"""
        ids = list(ids)
        if not ids:
            return 0
        result = await db.execute(delete(self.model).where(self.model.id.in_(ids)))
        return result.rowcount or 0


candidate_crud = CRUDCandidate(Candidate)
