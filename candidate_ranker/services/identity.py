"""
Identity resolution for generated candidates.

AI-authored profiles often reuse addresses (``john.doe@example.com``).
Emails are unique in the store, so a colliding address is disambiguated
with a plus-tag: ``john.doe+k3x9q@example.com``.
"""
import secrets
import string
from typing import Callable, Optional, Set

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from candidate_ranker.core.exceptions import IdentityCollisionExhausted
from candidate_ranker.crud import candidate_crud, normalize_email
from candidate_ranker.models.classifier import CandidateProfile

TOKEN_ALPHABET = string.ascii_lowercase + string.digits
TOKEN_LENGTH = 5
MAX_ATTEMPTS = 10


def random_token() -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


def tag_email(email: str, token: str) -> str:
    """``local@domain`` -> ``local+token@domain``"""
    local, _, domain = email.rpartition("@")
    return f"{local}+{token}@{domain}"


class IdentityResolver:
    """
    Assigns each profile of a batch an email that is free both in the store
    and among the addresses already handed out in the same batch.

    One resolver per batch; calls must be sequential.
    """

    def __init__(self, db: AsyncSession, token_factory: Callable[[], str] = random_token):
        self.db = db
        self._token_factory = token_factory
        self._assigned: Set[str] = set()

    @property
    def assigned(self) -> Set[str]:
        return set(self._assigned)

    async def _is_taken(self, email: str) -> bool:
        if email in self._assigned:
            return True
        return await candidate_crud.email_exists(self.db, email)

    async def resolve(self, profile: CandidateProfile) -> CandidateProfile:
        """Return the profile with a normalised, collision-free email."""
        proposed = normalize_email(profile.email)

        resolved: Optional[str] = None
        if not await self._is_taken(proposed):
            resolved = proposed
        else:
            for _ in range(MAX_ATTEMPTS):
                candidate_email = tag_email(proposed, self._token_factory())
                if not await self._is_taken(candidate_email):
                    resolved = candidate_email
                    break
            if resolved is None:
                raise IdentityCollisionExhausted(proposed, MAX_ATTEMPTS)
            logger.info("Email {} already in use, assigned {}", proposed, resolved)

        self._assigned.add(resolved)
        return profile.model_copy(update={"email": resolved})
