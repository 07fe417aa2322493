"""RefreshDueCredits Use Case

Scheduled counterpart of refresh-on-read: walks one page of ledgers and
resets the refreshable bucket of every ledger whose cadence has come due.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Optional
from libs.result import Result, Return, Error
from src.app.services.credit_cache import CreditCache
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.domain.base import utc_now
from .dtos import RefreshBatchResultDTO
from .ledger_update import refresh_if_due

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class RefreshDueCredits:
    """
    Use Case: Refresh one batch of ledgers

    Business Rules:
    1. Ledgers are visited in user ID order, starting after the cursor
    2. A ledger that is not due is skipped, not rewritten
    3. A failure on one ledger is recorded and the batch continues
    4. The returned cursor resumes after the last ledger of this page
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

    async def execute(
        self, batch_size: int = DEFAULT_BATCH_SIZE, cursor: Optional[str] = None
    ) -> Result[RefreshBatchResultDTO]:
        if batch_size <= 0:
            return Return.err(
                Error(code="INVALID_BATCH_SIZE", message=f"batch_size must be > 0, got {batch_size}")
            )

        start_time = time.time()
        try:
            # One extra row tells whether another page follows
            user_ids = await self.credits_repo.list_user_ids(limit=batch_size + 1, after=cursor)
        except Exception as e:
            logger.error(f"Credit refresh batch failed to list ledgers: {e}")
            return Return.err(
                Error(code="CREDIT_REFRESH_FAILED", message="Failed to list ledgers", reason=str(e))
            )

        has_more = len(user_ids) > batch_size
        page = user_ids[:batch_size]
        refreshed = skipped = failed = 0
        errors: list[str] = []

        for user_id in page:
            try:
                credits = await self.credits_repo.get_by_user_id(user_id)
                if credits is None or not credits.refresh_due(self.clock()):
                    skipped += 1
                    continue

                await refresh_if_due(self.uow, self.credits_repo, credits, self.clock())
                if self.cache is not None:
                    self.cache.invalidate(user_id)
                refreshed += 1
            except Exception as e:
                await self.uow.rollback()
                failed += 1
                errors.append(f"{user_id}: {e}")
                logger.error(f"Failed to refresh credits for user {user_id}: {e}")

        execution_time_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Credit refresh batch complete: {len(page)} ledgers, {refreshed} refreshed, "
            f"{skipped} skipped, {failed} failed in {execution_time_ms}ms"
        )

        return Return.ok(
            RefreshBatchResultDTO(
                total=len(page),
                processed=refreshed + skipped,
                refreshed=refreshed,
                skipped=skipped,
                failed=failed,
                errors=errors,
                cursor=page[-1] if has_more else None,
                has_more=has_more,
                execution_time_ms=execution_time_ms,
            )
        )
