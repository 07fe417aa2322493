"""InitializeUserCredits Use Case

Creates a user's ledger on first use, or returns the existing one.
"""

import logging
from datetime import datetime
from typing import Callable
from sqlalchemy.exc import IntegrityError
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.user_profile_repository import UserProfileRepository
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.domain.base import utc_now
from src.domain.credit_policy import PolicyError, get_subscription_credits
from src.domain.user_credits import UserCredits
from .dtos import InitializeCreditsCommandDTO
from .ledger_update import refresh_if_due

logger = logging.getLogger(__name__)


class InitializeUserCredits:
    """
    Use Case: Initialize or get a user's credit ledger

    Business Rules:
    1. The user must have a profile
    2. An existing ledger is returned (refreshed first if due), never recreated
    3. A new ledger starts with the tier allotment, no bonus, no history
    4. Two concurrent initializers end with one ledger: the loser of the
       insert returns the winner's ledger
    """

    def __init__(
        self,
        uow: UnitOfWork,
        profile_repo: UserProfileRepository,
        credits_repo: UserCreditsRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.uow = uow
        self.profile_repo = profile_repo
        self.credits_repo = credits_repo
        self.clock = clock

    async def execute(self, command: InitializeCreditsCommandDTO) -> Result[UserCredits]:
        try:
            profile = await self.profile_repo.get_by_id(command.user_id)
            if not profile:
                return Return.err(
                    Error(
                        code="USER_NOT_FOUND",
                        message=f"User {command.user_id} not found",
                    )
                )

            existing = await self.credits_repo.get_by_user_id(command.user_id)
            if existing:
                return Return.ok(await refresh_if_due(self.uow, self.credits_repo, existing, self.clock()))

            user_type = command.user_type or profile.user_type
            tier = command.subscription_tier or profile.subscription_tier
            try:
                allocation = get_subscription_credits(user_type, tier)
            except PolicyError as e:
                return Return.err(
                    Error(code="INVALID_SUBSCRIPTION", message=str(e))
                )

            now = self.clock()
            credits = UserCredits(
                user_id=command.user_id,
                user_type=user_type,
                subscription_tier=tier,
                refreshable_credits=allocation.monthly_credits,
                bonus_credits=0,
                total_credits_used=0,
                last_credit_refresh=now,
                created_at=now,
                updated_at=now,
            )

            try:
                created = await self.credits_repo.create(credits)
                await self.uow.commit()
            except IntegrityError:
                # Another initializer won the insert
                await self.uow.rollback()
                winner = await self.credits_repo.get_by_user_id(command.user_id)
                if winner is None:
                    raise
                return Return.ok(winner)

            logger.info(
                f"Initialized credits for user {command.user_id} "
                f"({user_type.value}/{tier.value}): {allocation.monthly_credits}"
            )
            return Return.ok(created)

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Failed to initialize credits for user {command.user_id}: {e}")
            return Return.err(
                Error(
                    code="INITIALIZE_CREDITS_FAILED",
                    message="Failed to initialize user credits",
                    reason=str(e),
                )
            )
