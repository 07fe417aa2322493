"""ResetRefreshableCredits Use Case

Admin action: put the refreshable bucket back to the tier allotment.
"""

import logging
from datetime import datetime
from typing import Callable, Optional
from libs.result import Result, Return, Error
from src.app.services.credit_cache import CreditCache
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from src.domain.base import utc_now
from src.domain.credit_policy import BONUS_FEATURE
from src.domain.credit_transaction import CreditTransaction, TransactionType
from src.domain.user_credits import UserCredits
from .dtos import ResetCreditsResultDTO
from .ledger_update import AtomicLedgerUpdate, DEFAULT_MAX_ATTEMPTS

logger = logging.getLogger(__name__)


class ResetRefreshableCredits:
    """
    Use Case: Admin reset of the refreshable bucket

    Business Rules:
    1. The ledger must exist (no auto-initialization for admin actions)
    2. refreshable_credits is set to the tier allotment; bonus is untouched
    3. A bonus transaction records the size of the adjustment, flagged with
       admin_action metadata; nothing is recorded when the bucket was full
    4. total_credits_used does not change
    """

    def __init__(
        self,
        uow: UnitOfWork,
        credits_repo: UserCreditsRepository,
        transaction_repo: CreditTransactionRepository,
        cache: Optional[CreditCache] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.uow = uow
        self.cache = cache
        self.ledger = AtomicLedgerUpdate(
            uow, credits_repo, transaction_repo, max_attempts=max_attempts, clock=clock
        )

    async def execute(self, user_id: str) -> Result[ResetCreditsResultDTO]:
        previous = {}

        def reset(credits: UserCredits, now: datetime) -> Result[Optional[CreditTransaction]]:
            allotment = credits.allocation().monthly_credits
            adjustment = allotment - credits.refreshable_credits
            previous["refreshable_credits"] = credits.refreshable_credits

            credits.refreshable_credits = allotment
            credits.last_credit_refresh = now

            if adjustment == 0:
                return Return.ok(None)

            return Return.ok(
                CreditTransaction(
                    user_id=credits.user_id,
                    type=TransactionType.BONUS,
                    amount=abs(adjustment),
                    feature=BONUS_FEATURE,
                    timestamp=now,
                    details={
                        "admin_action": True,
                        "action": "reset_daily_credits",
                        "adjustment": adjustment,
                        "previous_refreshable_credits": previous["refreshable_credits"],
                    },
                    description=f"Admin reset daily credits to tier default ({allotment})",
                )
            )

        try:
            result = await self.ledger.apply(user_id, reset)
            if self.cache is not None:
                self.cache.invalidate(user_id)
            if result.is_err():
                return result

            update = result.value
            logger.info(
                f"Admin reset refreshable credits for user {user_id}: "
                f"{previous['refreshable_credits']} -> {update.credits.refreshable_credits}"
            )
            return Return.ok(
                ResetCreditsResultDTO(
                    user_id=user_id,
                    previous_refreshable_credits=previous["refreshable_credits"],
                    refreshable_credits=update.credits.refreshable_credits,
                    transaction_id=update.transaction.id if update.transaction else None,
                )
            )

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Failed to reset credits for user {user_id}: {e}")
            return Return.err(
                Error(
                    code="RESET_CREDITS_FAILED",
                    message="Failed to reset credits",
                    reason=str(e),
                )
            )
