"""
Candidate classifier gateway.

The rest of the application talks to the LLM only through the
``CandidateClassifier`` protocol: generate profiles, write a CV, rank a set
of candidates. ``LLMClassifier`` is the production implementation on top of
the shared ``LLMClient``; tests substitute a scripted stub.

Transport and parse failures surface as ``ClassifierError``. Individual
malformed items (a profile without a name, a verdict without a score) are
dropped with a warning rather than failing the call.
"""
from __future__ import annotations

import json
from typing import Any, List, Optional, Protocol, Sequence, runtime_checkable

from loguru import logger
from openai import OpenAIError
from pydantic import ValidationError

from candidate_ranker.core.exceptions import ClassifierError
from candidate_ranker.models.classifier import (
    CandidateProfile,
    CandidateSummary,
    GeneratedCV,
    Verdict,
)
from .llm_client import LLMClient, LLMResponseError, get_llm_client
from .prompts import get_config, get_prompt

PROMPT_FILE = "classifier"


@runtime_checkable
class CandidateClassifier(Protocol):
    model_name: str

    async def generate_profiles(self, count: int) -> List[CandidateProfile]:
        ...

    async def generate_cv(self, profile: CandidateProfile) -> GeneratedCV:
        ...

    async def rank_candidates(
        self,
        candidates: Sequence[CandidateSummary],
        criteria: str,
    ) -> List[Verdict]:
        ...


def _unwrap_list(data: Any, *keys: str) -> List[Any]:
    """Accept a bare JSON array or an object holding one under ``keys``."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            if isinstance(data.get(key), list):
                return data[key]
    raise ClassifierError(f"Unexpected AI response shape: expected a list, got {type(data).__name__}")


class LLMClassifier:
    """CandidateClassifier backed by an OpenAI-compatible chat model."""

    def __init__(self, llm: Optional[LLMClient] = None):
        self._llm = llm or get_llm_client()

    @property
    def model_name(self) -> str:
        return self._llm.model

    def _temperature(self, task: str) -> Optional[float]:
        try:
            return float(get_config(PROMPT_FILE, f"temperatures.{task}"))
        except KeyError:
            return None

    async def _complete_json(self, system_prompt: str, user_prompt: str, temperature: Optional[float]) -> Any:
        try:
            return await self._llm.complete_json(system_prompt, user_prompt, temperature=temperature)
        except (OpenAIError, LLMResponseError) as exc:
            raise ClassifierError(f"AI service request failed: {exc}") from exc

    async def generate_profiles(self, count: int) -> List[CandidateProfile]:
        system_prompt = get_prompt(PROMPT_FILE, "profiles.system")
        user_prompt = get_prompt(PROMPT_FILE, "profiles.user", count=count)

        data = await self._complete_json(system_prompt, user_prompt, self._temperature("profiles"))
        items = _unwrap_list(data, "candidates", "profiles")

        profiles: List[CandidateProfile] = []
        for index, item in enumerate(items):
            try:
                profiles.append(CandidateProfile.model_validate(item))
            except ValidationError as exc:
                logger.warning("Dropping invalid profile #{}: {}", index, exc.errors()[0].get("msg"))

        logger.info("Classifier produced {} usable profiles out of {} ({} requested)", len(profiles), len(items), count)
        return profiles

    async def generate_cv(self, profile: CandidateProfile) -> GeneratedCV:
        system_prompt = get_prompt(PROMPT_FILE, "cv.system")
        user_prompt = get_prompt(
            PROMPT_FILE,
            "cv.user",
            name=profile.full_name,
            email=profile.email,
            phone=profile.phone or "-",
            years_of_exp=profile.years_of_exp,
            skills=", ".join(profile.skills),
        )

        try:
            content = await self._llm.complete(system_prompt, user_prompt, temperature=self._temperature("cv"))
        except (OpenAIError, LLMResponseError) as exc:
            raise ClassifierError(f"CV generation failed for {profile.full_name}: {exc}") from exc

        logger.info("Generated CV for {} ({} chars)", profile.full_name, len(content))
        return GeneratedCV(content=content, prompt=user_prompt)

    async def rank_candidates(
        self,
        candidates: Sequence[CandidateSummary],
        criteria: str,
    ) -> List[Verdict]:
        payload = json.dumps([c.to_prompt_dict() for c in candidates], ensure_ascii=False, indent=2)
        system_prompt = get_prompt(PROMPT_FILE, "ranking.system")
        user_prompt = get_prompt(PROMPT_FILE, "ranking.user", criteria=criteria, candidates=payload)

        logger.info("Ranking {} candidates for: {}", len(candidates), criteria)
        data = await self._complete_json(system_prompt, user_prompt, self._temperature("ranking"))
        items = _unwrap_list(data, "rankings")

        verdicts: List[Verdict] = []
        for index, item in enumerate(items):
            try:
                verdicts.append(Verdict.model_validate(item))
            except ValidationError as exc:
                logger.warning("Dropping malformed verdict #{}: {}", index, exc.errors()[0].get("msg"))
        return verdicts


def get_classifier() -> CandidateClassifier:
    """FastAPI dependency; overridden in tests"""
    return LLMClassifier()
