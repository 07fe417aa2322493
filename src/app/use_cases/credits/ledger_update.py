"""Atomic ledger updates

Read-modify-write of a single user's ledger inside a unit of work. The ledger
is read fresh, a due refresh is applied, the mutation runs, and the new
balances are written with a versioned compare-and-set. A lost race rolls back
and starts again from a fresh read.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from src.domain.base import utc_now
from src.domain.credit_transaction import CreditTransaction
from src.domain.user_credits import UserCredits

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5

# Mutates the ledger in place; returns the transaction to append (or None) or an error
LedgerMutation = Callable[[UserCredits, datetime], Result[Optional[CreditTransaction]]]


@dataclass
class LedgerUpdate:
    credits: UserCredits
    transaction: Optional[CreditTransaction]


def apply_due_refresh(credits: UserCredits, now: datetime) -> bool:
    """Reset the refreshable bucket in memory if the tier cadence says so"""
    if not credits.refresh_due(now):
        return False
    credits.refreshable_credits = credits.allocation().monthly_credits
    credits.last_credit_refresh = now
    return True


async def refresh_if_due(
    uow: UnitOfWork,
    credits_repo: UserCreditsRepository,
    credits: UserCredits,
    now: datetime,
) -> UserCredits:
    """
    Refresh-on-read

    Partial update outside the atomic path. Resets (never increments) the
    refreshable bucket and leaves bonus credits untouched. The write is tied to
    the version that was read; if another writer got there first, the stored
    ledger is returned instead, since every atomic write applies a due refresh
    itself.
    """
    if not credits.refresh_due(now):
        return credits

    previous = credits.refreshable_credits
    allotment = credits.allocation().monthly_credits
    refreshed = await credits_repo.update_refresh(
        credits.user_id, allotment, now, expected_version=credits.version
    )
    await uow.commit()

    if refreshed is None:
        logger.info(f"Ledger for user {credits.user_id} changed before refresh; re-reading")
        current = await credits_repo.get_by_user_id(credits.user_id)
        return current or credits

    logger.info(
        f"Refreshed credits for user {credits.user_id}: "
        f"{previous} -> {allotment}"
    )
    return refreshed


class AtomicLedgerUpdate:
    """
    Runs one ledger mutation with compare-and-set and bounded retry

    Business rejections from the mutation are returned as-is and nothing is
    written. Store exceptions propagate to the calling use case.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        credits_repo: UserCreditsRepository,
        transaction_repo: CreditTransactionRepository,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.uow = uow
        self.credits_repo = credits_repo
        self.transaction_repo = transaction_repo
        self.max_attempts = max(1, max_attempts)
        self.clock = clock

    async def apply(
        self,
        user_id: str,
        mutation: LedgerMutation,
        before_commit: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> Result[LedgerUpdate]:
        """
        Args:
            user_id: Ledger owner
            mutation: Applied to a fresh read on every attempt
            before_commit: Extra writes for the same unit of work, run after a
                successful compare-and-set on every attempt that gets that far
        """
        for attempt in range(1, self.max_attempts + 1):
            credits = await self.credits_repo.get_by_user_id(user_id, for_update=True)
            if credits is None:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="LEDGER_NOT_FOUND",
                        message=f"Credit ledger not found for user {user_id}",
                        reason="Ledger not initialized",
                    )
                )

            expected_version = credits.version
            now = self.clock()
            apply_due_refresh(credits, now)

            outcome = mutation(credits, now)
            if outcome.is_err():
                await self.uow.rollback()
                return outcome

            if not await self.credits_repo.compare_and_set(credits, expected_version):
                await self.uow.rollback()
                logger.warning(
                    f"Ledger write conflict for user {user_id} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                continue

            transaction = outcome.value
            if transaction is not None:
                await self.transaction_repo.create(transaction)
            if before_commit is not None:
                await before_commit()
            await self.uow.commit()
            return Return.ok(LedgerUpdate(credits=credits, transaction=transaction))

        logger.error(f"Giving up on ledger update for user {user_id} after {self.max_attempts} attempts")
        return Return.err(
            Error(
                code="LEDGER_WRITE_CONFLICT",
                message=f"Could not update credit ledger for user {user_id}",
                reason=f"compare-and-set lost {self.max_attempts} times",
            )
        )
