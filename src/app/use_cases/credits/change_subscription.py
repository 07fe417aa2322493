"""ChangeSubscription Use Case

Moves a user to another plan. The refreshable bucket keeps its balance until
the next refresh, which then uses the new allotment.
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
from src.domain.credit_policy import is_valid_tier
from src.domain.credit_transaction import CreditTransaction
from src.domain.user_credits import UserCredits
from .dtos import ChangeSubscriptionCommandDTO, InitializeCreditsCommandDTO
from .initialize_user_credits import InitializeUserCredits
from .ledger_update import AtomicLedgerUpdate, DEFAULT_MAX_ATTEMPTS

logger = logging.getLogger(__name__)


class ChangeSubscription:
    """
    Use Case: Change a user's plan

    Profile and ledger are updated in the same unit of work. A user without
    a ledger gets one initialized on the new plan.
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
        self.profile_repo = profile_repo
        self.credits_repo = credits_repo
        self.cache = cache
        self.initialize = InitializeUserCredits(uow, profile_repo, credits_repo, clock=clock)
        self.ledger = AtomicLedgerUpdate(
            uow, credits_repo, transaction_repo, max_attempts=max_attempts, clock=clock
        )

    async def execute(self, command: ChangeSubscriptionCommandDTO) -> Result[UserCredits]:
        if not is_valid_tier(command.user_type, command.subscription_tier):
            return Return.err(
                Error(
                    code="INVALID_SUBSCRIPTION",
                    message=f"Tier '{command.subscription_tier.value}' is not available for "
                            f"user type '{command.user_type.value}'",
                )
            )

        async def update_profile() -> None:
            await self.profile_repo.update_subscription(
                command.user_id, command.user_type, command.subscription_tier
            )

        def change_plan(credits: UserCredits, now: datetime) -> Result[Optional[CreditTransaction]]:
            credits.user_type = command.user_type
            credits.subscription_tier = command.subscription_tier
            return Return.ok(None)

        try:
            profile = await self.profile_repo.get_by_id(command.user_id)
            if not profile:
                return Return.err(
                    Error(code="USER_NOT_FOUND", message=f"User {command.user_id} not found")
                )

            existing = await self.credits_repo.get_by_user_id(command.user_id)
            if existing is None:
                await update_profile()
                await self.uow.commit()
                result = await self.initialize.execute(
                    InitializeCreditsCommandDTO(user_id=command.user_id)
                )
            else:
                applied = await self.ledger.apply(command.user_id, change_plan, before_commit=update_profile)
                result = Return.ok(applied.value.credits) if applied.is_ok() else applied

            if self.cache is not None:
                self.cache.invalidate(command.user_id)
            if result.is_ok():
                logger.info(
                    f"User {command.user_id} moved to "
                    f"{command.user_type.value}/{command.subscription_tier.value}"
                )
            return result

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Failed to change subscription for user {command.user_id}: {e}")
            return Return.err(
                Error(
                    code="CHANGE_SUBSCRIPTION_FAILED",
                    message="Failed to change subscription",
                    reason=str(e),
                )
            )
