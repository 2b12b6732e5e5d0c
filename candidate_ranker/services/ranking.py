"""
Ranking reconciliation.

Ranks every stored candidate against one criteria string and commits the
result as a new ranking epoch. The classifier is not trusted to cover every
candidate: ids it skips get one retry pass, then a zero-score fallback, so a
committed epoch always holds exactly one row per candidate with priorities
1..N.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from candidate_ranker.agents.classifier import CandidateClassifier
from candidate_ranker.core.config import settings
from candidate_ranker.core.exceptions import NoCandidatesError
from candidate_ranker.crud import candidate_crud, ranking_crud, RankingEntry
from candidate_ranker.models.candidate import Candidate
from candidate_ranker.models.classifier import CandidateSummary, Verdict
from candidate_ranker.models.ranking import Ranking, RankingEpoch

FALLBACK_SCORE = 0
FALLBACK_REASONING = "Could not be evaluated by AI - please re-run ranking."

# Serialises the commit section of concurrent runs within this process.
_commit_lock = asyncio.Lock()


@dataclass
class RankingRun:
    epoch: RankingEpoch
    criteria: str
    rankings: List[Ranking] = field(default_factory=list)
    first_pass: int = 0
    recovered_on_retry: int = 0
    fallback: int = 0
    retried: bool = False

    @property
    def total(self) -> int:
        return len(self.rankings)


def summarize(candidate: Candidate) -> CandidateSummary:
    return CandidateSummary(
        id=candidate.id,
        name=candidate.full_name,
        years_of_exp=candidate.years_of_exp,
        skills=candidate.skill_names,
    )


class RankingReconciler:
    """Fetch -> first pass -> gap check -> retry -> fallback -> priorities -> commit"""

    def __init__(self, db: AsyncSession, classifier: CandidateClassifier):
        self.db = db
        self.classifier = classifier

    @staticmethod
    def _adopt(
        verdicts: Sequence[Verdict],
        wanted: Sequence[str],
        adopted: Dict[str, Verdict],
        pass_name: str,
    ) -> List[str]:
        """
        Take verdicts for ids in ``wanted`` that are not covered yet.

        Unknown ids and repeated verdicts for the same id are discarded.
        Returns the newly covered ids in classifier order.
        """
        wanted_ids = set(wanted)
        covered: List[str] = []
        for verdict in verdicts:
            cid = verdict.candidate_id
            if cid not in wanted_ids:
                logger.debug("{}: discarding verdict for unexpected id {}", pass_name, cid)
                continue
            if cid in adopted:
                logger.debug("{}: discarding duplicate verdict for {}", pass_name, cid)
                continue
            adopted[cid] = verdict
            covered.append(cid)
        return covered

    async def rank_all(self, criteria: Optional[str] = None) -> RankingRun:
        criteria = (criteria or "").strip() or settings.default_ranking_criteria

        candidates = await candidate_crud.get_all_with_skills(self.db)
        if not candidates:
            raise NoCandidatesError()

        summaries = [summarize(c) for c in candidates]
        fetch_order = [s.id for s in summaries]
        # No transaction stays open across classifier calls.
        await self.db.commit()
        logger.info("Ranking {} candidates for '{}'", len(summaries), criteria)

        adopted: Dict[str, Verdict] = {}
        first_ids = self._adopt(
            await self.classifier.rank_candidates(summaries, criteria),
            fetch_order,
            adopted,
            "first pass",
        )

        missing = [cid for cid in fetch_order if cid not in adopted]
        retried = False
        recovered: List[str] = []
        if missing:
            logger.warning(
                "First pass missed {} of {} candidates, retrying once",
                len(missing),
                len(fetch_order),
            )
            retried = True
            recovered = self._adopt(
                await self.classifier.rank_candidates(summaries, criteria),
                missing,
                adopted,
                "retry pass",
            )
            missing = [cid for cid in missing if cid not in adopted]

        for cid in missing:
            logger.warning("Candidate {} still unranked after retry, using fallback", cid)
            adopted[cid] = Verdict(
                candidate_id=cid,
                score=FALLBACK_SCORE,
                should_interview=False,
                reasoning=FALLBACK_REASONING,
            )

        late = set(recovered) | set(missing)
        order = first_ids + [cid for cid in fetch_order if cid in late]

        epoch, rows = await self._commit(criteria, order, adopted)
        rankings = await ranking_crud.get_current(self.db)

        logger.info(
            "Committed ranking epoch {}: {} rows ({} first pass, {} on retry, {} fallback)",
            epoch.id,
            len(rows),
            len(first_ids),
            len(recovered),
            len(missing),
        )
        return RankingRun(
            epoch=epoch,
            criteria=criteria,
            rankings=rankings,
            first_pass=len(first_ids),
            recovered_on_retry=len(recovered),
            fallback=len(missing),
            retried=retried,
        )

    async def _commit(self, criteria: str, order: List[str], adopted: Dict[str, Verdict]):
        async with _commit_lock:
            existing = await candidate_crud.get_existing_ids(self.db, order)
            vanished = [cid for cid in order if cid not in existing]
            if vanished:
                logger.warning("{} candidates were deleted during ranking, dropping them", len(vanished))
            kept = [cid for cid in order if cid in existing]
            if not kept:
                await self.db.rollback()
                raise NoCandidatesError("All candidates were deleted during ranking")

            entries = [
                RankingEntry(
                    candidate_id=cid,
                    score=adopted[cid].score,
                    reasoning=adopted[cid].reasoning,
                    should_interview=adopted[cid].should_interview,
                    priority=position + 1,
                )
                for position, cid in enumerate(kept)
            ]
            return await ranking_crud.replace_all(self.db, criteria=criteria, entries=entries)
