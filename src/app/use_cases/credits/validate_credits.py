"""ValidateCredits Use Case

Balance check for one feature use. Never mutates balances.
"""

from datetime import datetime
from typing import Callable
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.user_profile_repository import UserProfileRepository
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.domain.base import utc_now
from src.domain.credit_policy import AIFeature
from src.domain.user_credits import UserCredits
from .dtos import CreditValidationResultDTO, InitializeCreditsCommandDTO
from .initialize_user_credits import InitializeUserCredits


def build_validation(credits: UserCredits, feature: AIFeature) -> CreditValidationResultDTO:
    cost = credits.feature_cost(feature)
    available = credits.available_credits
    has_enough = available >= cost
    return CreditValidationResultDTO(
        has_enough_credits=has_enough,
        required_credits=cost,
        current_credits=available,
        remaining_credits=max(0, available - cost),
        can_proceed=has_enough,
        message=(
            f"Credits available: {available}"
            if has_enough
            else f"Insufficient credits. Need {cost}, have {available}"
        ),
    )


class ValidateCredits:
    """
    Use Case: Check whether a user can afford a feature

    A missing ledger is initialized from the profile's plan first.
    Plan membership is not checked here; see CheckFeatureAccess.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        profile_repo: UserProfileRepository,
        credits_repo: UserCreditsRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.initialize = InitializeUserCredits(uow, profile_repo, credits_repo, clock=clock)

    async def execute(self, user_id: str, feature: AIFeature) -> Result[CreditValidationResultDTO]:
        result = await self.initialize.execute(InitializeCreditsCommandDTO(user_id=user_id))
        if result.is_err():
            return result

        try:
            return Return.ok(build_validation(result.value, AIFeature(feature)))
        except ValueError as e:
            return Return.err(
                Error(code="UNKNOWN_FEATURE", message=f"Unknown feature {feature}", reason=str(e))
            )
