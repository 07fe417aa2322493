"""GetUserCredits Use Case

Read-only ledger lookup with refresh-on-read.
"""

from datetime import datetime
from typing import Callable, Optional
from libs.result import Result, Return, Error
from src.app.services.credit_cache import CreditCache
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.domain.base import utc_now
from src.domain.user_credits import UserCredits
from .ledger_update import refresh_if_due


class GetUserCredits:
    """
    Use Case: Get a user's ledger

    Returns None (not an error) when the user has no ledger. A due refresh is
    written before the ledger is returned. When a cache is supplied, fresh
    cache entries are served without touching the store; a cached entry
    whose refresh has come due is bypassed.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        credits_repo: UserCreditsRepository,
        cache: Optional[CreditCache] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.uow = uow
        self.credits_repo = credits_repo
        self.cache = cache
        self.clock = clock

    async def execute(self, user_id: str) -> Result[Optional[UserCredits]]:
        try:
            now = self.clock()

            if self.cache is not None:
                cached = self.cache.get(user_id)
                if cached is not None and not cached.refresh_due(now):
                    return Return.ok(cached)

            credits = await self.credits_repo.get_by_user_id(user_id)
            if credits is None:
                return Return.ok(None)

            refreshed = await refresh_if_due(self.uow, self.credits_repo, credits, now)
            if self.cache is not None:
                self.cache.set(user_id, refreshed)
            return Return.ok(refreshed)

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="GET_CREDITS_FAILED",
                    message="Failed to get user credits",
                    reason=str(e),
                )
            )
