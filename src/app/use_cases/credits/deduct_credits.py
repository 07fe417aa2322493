"""DeductCredits Use Case

Charges one feature use against a user's ledger, atomically.
"""

import logging
from datetime import datetime
from typing import Callable, Optional
from libs.result import Result, Return, Error
from src.app.services.credit_cache import CreditCache
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.user_profile_repository import UserProfileRepository
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from src.domain.base import utc_now
from src.domain.credit_transaction import CreditTransaction, TransactionType
from src.domain.user_credits import UserCredits
from .dtos import DeductCreditsCommandDTO, DeductResultDTO, InitializeCreditsCommandDTO
from .initialize_user_credits import InitializeUserCredits
from .ledger_update import AtomicLedgerUpdate, DEFAULT_MAX_ATTEMPTS

logger = logging.getLogger(__name__)


class DeductCredits:
    """
    Use Case: Deduct the cost of a feature use

    Business Rules:
    1. A missing ledger is initialized from the profile's plan
    2. The feature must be in the plan (checked before the balance)
    3. refreshable + bonus must cover the cost, else nothing is written
    4. The refreshable bucket is consumed first, the remainder from bonus
    5. A spent transaction is appended and total_credits_used grows by the cost

    Flow:
    1. Initialize ledger if missing
    2. Fresh read inside the unit of work (refresh applied if due)
    3. Check plan and balance
    4. Compare-and-set balances, append transaction, commit
    5. Retry from step 2 on a lost compare-and-set
    """

    def __init__(
        self,
        uow: UnitOfWork,
        profile_repo: UserProfileRepository,
        credits_repo: UserCreditsRepository,
        transaction_repo: CreditTransactionRepository,
        cache: Optional[CreditCache] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.uow = uow
        self.cache = cache
        self.initialize = InitializeUserCredits(uow, profile_repo, credits_repo, clock=clock)
        self.ledger = AtomicLedgerUpdate(
            uow, credits_repo, transaction_repo, max_attempts=max_attempts, clock=clock
        )

    async def execute(self, command: DeductCreditsCommandDTO) -> Result[DeductResultDTO]:
        feature = command.feature
        split = {}

        def deduct(credits: UserCredits, now: datetime) -> Result[Optional[CreditTransaction]]:
            if not credits.has_feature(feature):
                return Return.err(
                    Error(
                        code="FEATURE_NOT_IN_PLAN",
                        message=f"Feature {feature.value} is not available on the "
                                f"{credits.subscription_tier.value} plan",
                        reason=f"user_type={credits.user_type.value}, tier={credits.subscription_tier.value}",
                    )
                )

            cost = credits.feature_cost(feature)
            if credits.available_credits < cost:
                return Return.err(
                    Error(
                        code="INSUFFICIENT_CREDIT",
                        message=f"Insufficient credits. Need {cost}, have {credits.available_credits}",
                        reason=f"refreshable={credits.refreshable_credits}, bonus={credits.bonus_credits}",
                    )
                )

            from_refreshable, from_bonus = credits.split_deduction(cost)
            credits.refreshable_credits -= from_refreshable
            credits.bonus_credits -= from_bonus
            credits.total_credits_used += cost
            split.update(from_refreshable=from_refreshable, from_bonus=from_bonus)

            return Return.ok(
                CreditTransaction(
                    user_id=credits.user_id,
                    type=TransactionType.SPENT,
                    amount=cost,
                    feature=feature.value,
                    timestamp=now,
                    details=dict(command.metadata or {}),
                    description=f"Used {feature.value} feature",
                )
            )

        try:
            initialized = await self.initialize.execute(
                InitializeCreditsCommandDTO(user_id=command.user_id)
            )
            if initialized.is_err():
                return initialized

            result = await self.ledger.apply(command.user_id, deduct)
            if self.cache is not None:
                self.cache.invalidate(command.user_id)
            if result.is_err():
                return result

            update = result.value
            logger.info(
                f"Deducted {update.transaction.amount} credits from user {command.user_id} "
                f"for {feature.value}"
            )
            return Return.ok(
                DeductResultDTO(
                    user_id=command.user_id,
                    feature=feature.value,
                    amount=update.transaction.amount,
                    from_refreshable=split["from_refreshable"],
                    from_bonus=split["from_bonus"],
                    remaining_credits=update.credits.available_credits,
                    transaction_id=update.transaction.id,
                )
            )

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Failed to deduct credits for user {command.user_id}: {e}")
            return Return.err(
                Error(
                    code="DEDUCT_CREDIT_FAILED",
                    message="Failed to deduct credits",
                    reason=str(e),
                )
            )
