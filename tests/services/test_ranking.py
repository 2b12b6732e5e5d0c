"""
Ranking reconciler tests

Retry, fallback, priority assignment and epoch replacement
"""
import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from candidate_ranker.core.database import enable_sqlite_foreign_keys
from candidate_ranker.core.exceptions import ClassifierError, NoCandidatesError
from candidate_ranker.crud import candidate_crud, ranking_crud
from candidate_ranker.models import Ranking, RankingEpoch, Verdict
from candidate_ranker.services import RankingReconciler
from candidate_ranker.services.ranking import FALLBACK_REASONING
from tests.conftest import DataFactory, ScriptedClassifier, verdicts_for


@pytest.mark.asyncio
async def test_every_candidate_gets_one_ranking(db_session, factory: DataFactory):
    """Full first pass: N rows, priorities 1..N, no retry"""
    await factory.add_candidates(4)
    classifier = ScriptedClassifier()

    run = await RankingReconciler(db_session, classifier).rank_all("Backend Engineer")

    assert run.total == 4
    assert sorted(r.priority for r in run.rankings) == [1, 2, 3, 4]
    assert run.first_pass == 4
    assert run.retried is False
    assert len(classifier.rank_calls) == 1
    assert classifier.rank_calls[0][1] == "Backend Engineer"
    assert await ranking_crud.count_current(db_session) == 4


@pytest.mark.asyncio
async def test_default_criteria_used_when_blank(db_session, factory: DataFactory):
    await factory.add_candidate()
    classifier = ScriptedClassifier()

    run = await RankingReconciler(db_session, classifier).rank_all("   ")

    assert run.criteria == "Software Engineering Position"
    assert classifier.rank_calls[0][1] == "Software Engineering Position"


@pytest.mark.asyncio
async def test_retry_recovers_and_fallback_fills_the_rest(db_session, factory: DataFactory):
    """First pass misses two, retry recovers one, the last falls back to score 0"""
    await factory.add_candidates(5)
    ids_in_order = [c.id for c in await candidate_crud.get_all_with_skills(db_session)]
    missed_both, recovered = ids_in_order[1], ids_in_order[3]

    classifier = ScriptedClassifier(rankings=[
        lambda cands: verdicts_for(cands, skip={missed_both, recovered}),
        lambda cands: [v for v in verdicts_for(cands) if v.candidate_id == recovered],
    ])

    run = await RankingReconciler(db_session, classifier).rank_all("Data Engineer")

    assert run.retried is True
    assert len(classifier.rank_calls) == 2
    assert (run.first_pass, run.recovered_on_retry, run.fallback) == (3, 1, 1)
    assert run.total == 5
    assert sorted(r.priority for r in run.rankings) == [1, 2, 3, 4, 5]

    by_id = {r.candidate_id: r for r in run.rankings}
    fallback = by_id[missed_both]
    assert fallback.score == 0
    assert fallback.should_interview is False
    assert fallback.reasoning == FALLBACK_REASONING
    # late verdicts follow the first pass, in fetch order
    assert fallback.priority == 4
    assert by_id[recovered].priority == 5


@pytest.mark.asyncio
async def test_retry_does_not_override_first_pass(db_session, factory: DataFactory):
    await factory.add_candidates(2)
    first_id, second_id = [c.id for c in await candidate_crud.get_all_with_skills(db_session)]

    classifier = ScriptedClassifier(rankings=[
        [Verdict(candidate_id=first_id, score=90, should_interview=True, reasoning="strong")],
        [
            Verdict(candidate_id=first_id, score=5, should_interview=False, reasoning="changed mind"),
            Verdict(candidate_id=second_id, score=40, should_interview=False, reasoning="ok"),
        ],
    ])

    run = await RankingReconciler(db_session, classifier).rank_all()

    by_id = {r.candidate_id: r for r in run.rankings}
    assert by_id[first_id].score == 90
    assert by_id[first_id].priority == 1
    assert by_id[second_id].score == 40
    assert by_id[second_id].priority == 2


@pytest.mark.asyncio
async def test_unknown_and_duplicate_verdicts_are_discarded(db_session, factory: DataFactory):
    await factory.add_candidates(2)
    first_id, second_id = [c.id for c in await candidate_crud.get_all_with_skills(db_session)]

    classifier = ScriptedClassifier(rankings=[[
        Verdict(candidate_id="not-a-candidate", score=99, should_interview=True, reasoning="ghost"),
        Verdict(candidate_id=second_id, score=70, should_interview=True, reasoning="first verdict"),
        Verdict(candidate_id=second_id, score=10, should_interview=False, reasoning="duplicate"),
        Verdict(candidate_id=first_id, score=60, should_interview=True, reasoning="fine"),
    ]])

    run = await RankingReconciler(db_session, classifier).rank_all()

    assert run.retried is False
    assert [r.candidate_id for r in run.rankings] == [second_id, first_id]
    assert run.rankings[0].reasoning == "first verdict"


@pytest.mark.asyncio
async def test_empty_store_raises_without_writing_an_epoch(db_session, factory: DataFactory):
    with pytest.raises(NoCandidatesError):
        await RankingReconciler(db_session, ScriptedClassifier()).rank_all()

    assert await ranking_crud.get_current_epoch(db_session) is None


@pytest.mark.asyncio
async def test_classifier_failure_keeps_previous_epoch(db_session, factory: DataFactory):
    await factory.add_candidates(3)
    first = await RankingReconciler(db_session, ScriptedClassifier()).rank_all("First run")

    failing = ScriptedClassifier(rankings=[ClassifierError("upstream timeout")])
    with pytest.raises(ClassifierError):
        await RankingReconciler(db_session, failing).rank_all("Second run")

    epoch = await ranking_crud.get_current_epoch(db_session)
    assert epoch.id == first.epoch.id
    current = await ranking_crud.get_current(db_session)
    assert len(current) == 3
    assert {r.criteria for r in current} == {"First run"}


@pytest.mark.asyncio
async def test_rerank_replaces_previous_epoch(db_session, factory: DataFactory):
    """Only the latest epoch survives; epoch ids increase"""
    await factory.add_candidates(3)
    first = await RankingReconciler(db_session, ScriptedClassifier()).rank_all("Frontend")
    second = await RankingReconciler(db_session, ScriptedClassifier()).rank_all("Backend")

    assert second.epoch.id > first.epoch.id

    epochs = (await db_session.execute(select(RankingEpoch))).scalars().all()
    assert [e.id for e in epochs] == [second.epoch.id]

    rows = (await db_session.execute(select(Ranking))).scalars().all()
    assert len(rows) == 3
    assert {r.epoch_id for r in rows} == {second.epoch.id}
    assert {r.criteria for r in rows} == {"Backend"}


@pytest_asyncio.fixture
async def file_sessions(tmp_path):
    """Session factory over a database file, so two sessions use two connections"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'rankings.db'}")
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest.mark.asyncio
async def test_reader_sees_previous_epoch_until_commit(file_sessions, monkeypatch):
    """A concurrent reader sees the old epoch or the new one, never a mix"""
    async with file_sessions() as writer, file_sessions() as reader:
        await DataFactory(client=None, db=writer).add_candidates(3)
        first = await RankingReconciler(writer, ScriptedClassifier()).rank_all("Frontend")

        seen = []
        pending = []
        real_commit = writer.commit

        async def commit_after_reading():
            pending.append((await ranking_crud.get_current_epoch(writer)).id)
            rows = await ranking_crud.get_current(reader)
            seen.append((
                (await ranking_crud.get_current_epoch(reader)).id,
                {r.epoch_id for r in rows},
                {r.criteria for r in rows},
                await ranking_crud.count_current(reader),
            ))
            # release the read lock so the writer can commit
            await reader.rollback()
            await real_commit()

        monkeypatch.setattr(writer, "commit", commit_after_reading)
        second = await RankingReconciler(writer, ScriptedClassifier()).rank_all("Backend")

        assert second.epoch.id in pending
        assert all(s == (first.epoch.id, {first.epoch.id}, {"Frontend"}, 3) for s in seen)

        rows = await ranking_crud.get_current(reader)
        assert {r.epoch_id for r in rows} == {second.epoch.id}
        assert await ranking_crud.count_current(reader) == 3


@pytest.mark.asyncio
async def test_candidate_deleted_during_ranking_is_dropped(db_session, factory: DataFactory):
    """Priorities stay contiguous when a candidate vanishes mid-run"""
    candidates = await factory.add_candidates(3)
    doomed = candidates[1].id

    class DeletingClassifier(ScriptedClassifier):
        async def rank_candidates(self, candidates, criteria):
            verdicts = await super().rank_candidates(candidates, criteria)
            await candidate_crud.delete_many(db_session, [doomed])
            await db_session.commit()
            return verdicts

    classifier = DeletingClassifier()
    run = await RankingReconciler(db_session, classifier).rank_all()

    assert run.total == 2
    assert doomed not in {r.candidate_id for r in run.rankings}
    assert sorted(r.priority for r in run.rankings) == [1, 2]


@pytest.mark.asyncio
async def test_interview_split_orderings(db_session, factory: DataFactory):
    await factory.add_candidates(4)
    ids = [c.id for c in await candidate_crud.get_all_with_skills(db_session)]

    classifier = ScriptedClassifier(rankings=[[
        Verdict(candidate_id=ids[0], score=80, should_interview=True, reasoning="a"),
        Verdict(candidate_id=ids[1], score=30, should_interview=False, reasoning="b"),
        Verdict(candidate_id=ids[2], score=45, should_interview=False, reasoning="c"),
        Verdict(candidate_id=ids[3], score=95, should_interview=True, reasoning="d"),
    ]])
    await RankingReconciler(db_session, classifier).rank_all()

    should, should_not = await ranking_crud.get_interview_split(db_session)

    assert [r.candidate_id for r in should] == [ids[0], ids[3]]
    assert [r.priority for r in should] == [1, 4]
    assert [r.candidate_id for r in should_not] == [ids[2], ids[1]]
    assert len(should) + len(should_not) == 4
