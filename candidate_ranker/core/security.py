"""
Request guards

API key check and per-client rate limiting, both exposed as FastAPI
dependencies.
"""
import secrets
import time
from threading import Lock
from typing import Dict, Optional, Tuple

from fastapi import Header, Request
from loguru import logger

from .config import settings
from .exceptions import UnauthorizedException, RateLimitExceeded


async def require_api_key(
    request: Request,
    x_api_key: Optional[str] = Header(None, alias="x-api-key"),
) -> None:
    """
    When ``API_KEY`` is configured the client must send a matching
    ``x-api-key`` header. Without a configured key authentication is skipped.
    """
    if not settings.auth_enabled:
        return
    if not x_api_key or not secrets.compare_digest(x_api_key.encode(), settings.api_key.encode()):
        client = request.client.host if request.client else "unknown"
        logger.warning("Authentication failed: invalid or missing API key | ip={} path={}", client, request.url.path)
        raise UnauthorizedException()


class ClientRateLimiter:
    """
    Token bucket per client key.

    ``max_requests`` tokens refill evenly over ``window_seconds``. Buckets
    that have refilled completely carry no state and are evicted once per
    window.
    """

    def __init__(self, max_requests: int, window_seconds: int, message: str):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self._buckets: Dict[str, Tuple[float, float]] = {}
        self._last_sweep = time.monotonic()
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._buckets)

    @property
    def refill_rate(self) -> float:
        return self.max_requests / float(self.window_seconds)

    def acquire(self, key: str) -> Tuple[bool, int]:
        """Take one token for ``key``; returns (allowed, retry_after_seconds)"""
        with self._lock:
            now = time.monotonic()
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            tokens, last_update = self._buckets.get(key, (float(self.max_requests), now))
            tokens = min(self.max_requests, tokens + (now - last_update) * self.refill_rate)
            if tokens >= 1:
                self._buckets[key] = (tokens - 1, now)
                return True, 0
            self._buckets[key] = (tokens, now)
            retry_after = int((1 - tokens) / self.refill_rate) + 1
            return False, retry_after

    def _sweep(self, now: float) -> None:
        idle = [
            key for key, (tokens, last_update) in self._buckets.items()
            if tokens + (now - last_update) * self.refill_rate >= self.max_requests
        ]
        for key in idle:
            del self._buckets[key]
        self._last_sweep = now

    def check(self, key: str) -> None:
        allowed, retry_after = self.acquire(key)
        if not allowed:
            logger.warning("Rate limit exceeded for {} (retry after {}s)", key, retry_after)
            raise RateLimitExceeded(self.message, retry_after=retry_after)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


def create_rate_limiters() -> Dict[str, ClientRateLimiter]:
    """Limiters are created per application instance and kept on ``app.state``"""
    return {
        "api": ClientRateLimiter(
            settings.api_rate_limit_requests,
            settings.api_rate_limit_window,
            "Too many requests, please try again later.",
        ),
        "ai": ClientRateLimiter(
            settings.ai_rate_limit_requests,
            settings.ai_rate_limit_window,
            "Too many AI generation requests. Please wait before trying again.",
        ),
    }


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "anonymous"


def _limiter(request: Request, name: str) -> Optional[ClientRateLimiter]:
    limiters = getattr(request.app.state, "rate_limiters", None)
    if not limiters:
        return None
    return limiters.get(name)


async def api_rate_limit(request: Request) -> None:
    """General limiter for every API route"""
    limiter = _limiter(request, "api")
    if limiter:
        limiter.check(_client_key(request))


async def ai_rate_limit(request: Request) -> None:
    """Stricter limiter for the endpoints that call the LLM"""
    limiter = _limiter(request, "ai")
    if limiter:
        limiter.check(_client_key(request))
