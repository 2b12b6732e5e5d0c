"""
Batch candidate generation.

One batch: ask the classifier for profiles, then for each profile in turn
resolve its email, store the candidate, have the classifier write a CV and
store it. Each step commits on its own, so no transaction is held while
waiting on the LLM. If any step fails, the candidates this batch already
stored are deleted again and the whole batch is reported as failed.
A batch with fewer usable profiles than requested fails before anything
is stored.
"""
from typing import List

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from candidate_ranker.agents.classifier import CandidateClassifier
from candidate_ranker.core.config import settings
from candidate_ranker.core.exceptions import BadRequestException, ClassifierError, PartialBatchError
from candidate_ranker.crud import candidate_crud, cv_crud
from candidate_ranker.models.classifier import (
    BatchGenerationResult,
    CandidateProfile,
    GenerationRecord,
)
from .identity import IdentityResolver


class BatchGenerationPipeline:

    def __init__(self, db: AsyncSession, classifier: CandidateClassifier):
        self.db = db
        self.classifier = classifier

    async def generate(self, count: int) -> BatchGenerationResult:
        if not 1 <= count <= settings.generation_max_count:
            raise BadRequestException(f"count must be between 1 and {settings.generation_max_count}")

        profiles = await self.classifier.generate_profiles(count)
        if not profiles:
            raise ClassifierError("AI returned no usable candidate profiles")
        if len(profiles) < count:
            raise ClassifierError(
                f"AI returned only {len(profiles)} usable candidate profiles, {count} requested"
            )
        if len(profiles) > count:
            logger.info("Classifier returned {} profiles, keeping the first {}", len(profiles), count)
            profiles = profiles[:count]

        resolver = IdentityResolver(self.db)
        created: List[str] = []
        records: List[GenerationRecord] = []

        for index, profile in enumerate(profiles, start=1):
            try:
                record = await self._process(resolver, profile, created)
            except Exception as exc:
                logger.error(
                    "Generation failed on profile {}/{} ({}): {}",
                    index,
                    len(profiles),
                    profile.full_name,
                    exc,
                )
                await self._compensate(created)
                raise PartialBatchError(
                    f"Candidate generation failed after {len(records)} of {count}: {exc}",
                    completed=len(records),
                    requested=count,
                ) from exc
            records.append(record)
            logger.info("Generated candidate {}/{}: {}", index, len(profiles), record.name)

        return BatchGenerationResult(requested=count, generated=len(records), candidates=records)

    async def _process(
        self,
        resolver: IdentityResolver,
        profile: CandidateProfile,
        created: List[str],
    ) -> GenerationRecord:
        resolved = await resolver.resolve(profile)

        candidate = await candidate_crud.create_with_skills(self.db, obj_in=resolved.model_dump())
        await self.db.commit()
        created.append(candidate.id)

        cv = await self.classifier.generate_cv(resolved)
        cv_row = await cv_crud.create_cv(
            self.db,
            candidate_id=candidate.id,
            content=cv.content,
            prompt=cv.prompt,
            generated_by=self.classifier.model_name,
        )
        await self.db.commit()

        return GenerationRecord(candidate_id=candidate.id, name=candidate.full_name, cv_id=cv_row.id)

    async def _compensate(self, created: List[str]) -> None:
        """Delete what this batch committed so far"""
        await self.db.rollback()
        if not created:
            return
        removed = await candidate_crud.delete_many(self.db, created)
        await self.db.commit()
        logger.warning("Rolled back {} candidates of the failed batch", removed)
