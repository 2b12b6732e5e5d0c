"""
Test fixtures

In-memory database per test, a scripted classifier standing in for the LLM,
an HTTP client bound to the app and a data factory.
"""
from typing import Any, AsyncGenerator, Callable, Iterable, List, Optional, Sequence, Union
from dataclasses import dataclass, field

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from candidate_ranker import models  # noqa: F401  registers the tables
from candidate_ranker.agents.classifier import get_classifier
from candidate_ranker.core.database import enable_sqlite_foreign_keys, get_db
from candidate_ranker.core.exceptions import ClassifierError
from candidate_ranker.crud import candidate_crud
from candidate_ranker.main import create_app
from candidate_ranker.models import (
    Candidate,
    CandidateProfile,
    CandidateSummary,
    GeneratedCV,
    Verdict,
)


# ========== Scripted classifier ==========

RankingScript = Union[Exception, List[Verdict], Callable[[Sequence[CandidateSummary]], List[Verdict]]]


def verdicts_for(
    candidates: Sequence[CandidateSummary],
    skip: Iterable[str] = (),
    interview_above: int = 50,
) -> List[Verdict]:
    """One verdict per candidate, scores descending in the given order"""
    skipped = set(skip)
    verdicts = []
    for index, summary in enumerate(candidates):
        if summary.id in skipped:
            continue
        score = max(100 - index * 10, 0)
        verdicts.append(Verdict(
            candidate_id=summary.id,
            score=score,
            should_interview=score >= interview_above,
            reasoning=f"Scored {score} for {summary.name}",
        ))
    return verdicts


class ScriptedClassifier:
    """
    Replays queued answers.

    ``rankings`` holds one entry per expected rank_candidates call: a verdict
    list, a callable building verdicts from the summaries, or an exception to
    raise. Once the queue is empty every candidate is ranked.
    """

    model_name = "scripted-model"

    def __init__(
        self,
        profiles: Optional[List[CandidateProfile]] = None,
        rankings: Optional[List[RankingScript]] = None,
        cv_failures: Iterable[str] = (),
        profile_error: Optional[Exception] = None,
    ):
        self.profiles = list(profiles or [])
        self.rankings = list(rankings or [])
        self.cv_failures = set(cv_failures)
        self.profile_error = profile_error
        self.profile_calls: List[int] = []
        self.cv_calls: List[str] = []
        self.rank_calls: List[tuple] = []

    async def generate_profiles(self, count: int) -> List[CandidateProfile]:
        self.profile_calls.append(count)
        if self.profile_error is not None:
            raise self.profile_error
        return list(self.profiles)

    async def generate_cv(self, profile: CandidateProfile) -> GeneratedCV:
        self.cv_calls.append(profile.email)
        if profile.first_name in self.cv_failures:
            raise ClassifierError(f"CV generation failed for {profile.full_name}")
        return GeneratedCV(content=f"# {profile.full_name}\n\nCV body", prompt=f"Write a CV for {profile.full_name}")

    async def rank_candidates(self, candidates: Sequence[CandidateSummary], criteria: str) -> List[Verdict]:
        self.rank_calls.append(([c.id for c in candidates], criteria))
        script = self.rankings.pop(0) if self.rankings else verdicts_for
        if isinstance(script, Exception):
            raise script
        if callable(script):
            return script(candidates)
        return list(script)


class FakeLLM:
    """Stands in for LLMClient; returns canned answers and records prompts"""

    model = "fake-gpt"

    def __init__(self, answer: Any = None, text: str = "", error: Optional[Exception] = None):
        self.answer = answer
        self.text = text
        self.error = error
        self.prompts: List[tuple] = []

    async def complete_json(self, system_prompt, user_prompt, temperature=None, model=None):
        self.prompts.append((system_prompt, user_prompt, temperature))
        if self.error:
            raise self.error
        return self.answer

    async def complete(self, system_prompt, user_prompt, temperature=None, model=None):
        self.prompts.append((system_prompt, user_prompt, temperature))
        if self.error:
            raise self.error
        return self.text


def make_profile(index: int = 1, **overrides) -> CandidateProfile:
    data = {
        "first_name": f"First{index}",
        "last_name": f"Last{index}",
        "email": f"candidate{index}@example.com",
        "phone": f"+1-555-01{index:02d}",
        "years_of_exp": index,
        "skills": ["Python", "SQL", "Docker"],
        **overrides,
    }
    return CandidateProfile.model_validate(data)


# ========== Data factory ==========

@dataclass
class DataFactory:
    """
    Creates test records, either through the API (``client``) or straight
    into the store (``db``).
    """
    client: AsyncClient
    db: AsyncSession
    _counter: int = field(default=0, repr=False)

    def _next_id(self) -> str:
        self._counter += 1
        return str(self._counter)

    def candidate_data(self, **overrides) -> dict:
        suffix = self._next_id()
        return {
            "first_name": f"Test{suffix}",
            "last_name": "Candidate",
            "email": f"test{suffix}@example.com",
            "phone": f"+1-555-{suffix.zfill(4)}",
            "years_of_exp": 3,
            "skills": ["Python", "FastAPI"],
            **overrides,
        }

    async def create_candidate(self, **overrides) -> dict:
        """POST /candidates, returns the response data"""
        resp = await self.client.post("/api/v1/candidates", json=self.candidate_data(**overrides))
        assert resp.status_code == 200, f"Creating candidate failed: {resp.text}"
        return resp.json()["data"]

    async def add_candidate(self, **overrides) -> Candidate:
        """Insert directly and commit"""
        candidate = await candidate_crud.create_with_skills(self.db, obj_in=self.candidate_data(**overrides))
        await self.db.commit()
        return candidate

    async def add_candidates(self, n: int) -> List[Candidate]:
        return [await self.add_candidate() for _ in range(n)]


# ========== Database ==========

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Fresh in-memory database per test

    StaticPool keeps the single connection (and so the database) alive for
    the whole test.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def classifier() -> ScriptedClassifier:
    return ScriptedClassifier()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, classifier: ScriptedClassifier) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client against a fresh app

    get_db yields the test session, get_classifier the scripted classifier.
    """
    app = create_app()

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_classifier] = lambda: classifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def factory(client: AsyncClient, db_session: AsyncSession) -> DataFactory:
    return DataFactory(client=client, db=db_session)
