"""
Shared LLM client wrapper.
"""
import asyncio
import json
import time
from typing import Dict, List, Any, Optional
from openai import AsyncOpenAI, OpenAIError
from threading import Lock
from loguru import logger

from candidate_ranker.core.config import settings


class LLMResponseError(ValueError):
    """The model answered, but not with something usable"""


class RateLimiter:
    """Token bucket, refilled at ``rate`` requests per minute."""

    def __init__(self, rate: int):
        self.rate = rate
        self.tokens = rate
        self.last_update = time.time()
        self._lock = Lock()

    def acquire(self) -> bool:
        with self._lock:
            now = time.time()
            elapsed = now - self.last_update
            self.tokens = min(self.rate, self.tokens + elapsed * (self.rate / 60.0))
            self.last_update = now
            if self.tokens >= 1:
                self.tokens -= 1
                return True
            return False

    def wait_and_acquire(self):
        while not self.acquire():
            time.sleep(0.1)


class ConcurrencyLimiter:
    """Caps in-flight LLM requests."""

    def __init__(self, max_concurrency: int):
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def acquire(self):
        await self._semaphore.acquire()

    def release(self):
        self._semaphore.release()


class LLMClient:
    """
    Process-wide LLM client with concurrency control, rate limiting and
    JSON parsing. Talks to any OpenAI-compatible endpoint.
    """

    _instance: Optional["LLMClient"] = None
    _lock = Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if getattr(self, "_initialized", False):
            return

        self.model = settings.llm_model
        self.api_key = settings.llm_api_key
        self.base_url = settings.llm_base_url
        self.temperature = settings.llm_temperature
        self.timeout = settings.llm_timeout
        self.max_tokens = settings.llm_max_tokens

        self._client: Optional[AsyncOpenAI] = None

        self._rate_limiter = RateLimiter(settings.llm_rate_limit)
        self._concurrency_limiter = ConcurrencyLimiter(settings.llm_max_concurrency)

        self._initialized = True
        logger.info(
            "LLMClient initialized: model={}, max_concurrency={}, rate_limit={}/min",
            self.model,
            settings.llm_max_concurrency,
            settings.llm_rate_limit,
        )

    def _get_client(self) -> AsyncOpenAI:
        """Built on first use; without an API key only the LLM calls fail"""
        if self._client is None:
            if not self.is_configured():
                raise OpenAIError("LLM API key is not configured (set LLM_API_KEY)")
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    @staticmethod
    def parse_json(content: str) -> Any:
        """Parse a JSON answer, tolerating a surrounding markdown code fence."""
        text = content.strip()
        if text.startswith("```json"):
            text = text[7:]
        elif text.startswith("```"):
            text = text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            logger.error("JSON parse failed: {}\nRaw content: {}", exc, text[:500])
            raise LLMResponseError(f"LLM response is not valid JSON: {exc}") from exc

    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> str:
        """Send a chat request and return the text answer."""
        client = self._get_client()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._rate_limiter.wait_and_acquire)

        await self._concurrency_limiter.acquire()
        try:
            response = await client.chat.completions.create(
                model=model or self.model,
                messages=messages,
                temperature=temperature if temperature is not None else self.temperature,
                max_tokens=self.max_tokens,
            )
            if not response or not response.choices:
                raise LLMResponseError("LLM returned an empty response")
            content = response.choices[0].message.content
            if not content or not content.strip():
                raise LLMResponseError("LLM returned no text content")
            return content.strip()
        except Exception as exc:
            logger.error("LLM call failed: {}", exc)
            raise
        finally:
            self._concurrency_limiter.release()

    async def chat_json(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> Any:
        content = await self.chat(messages, temperature, model)
        return self.parse_json(content)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        return await self.chat(messages, temperature, model)

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> Any:
        """system + user messages, parsed JSON answer"""
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        return await self.chat_json(messages, temperature, model)

    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key != "your-api-key-here"


def get_llm_client() -> LLMClient:
    return LLMClient()
