"""GetCreditSummary Use Case

Ledger query surface: remaining balance, usage against the allotment and
plan details for display.
"""

from datetime import datetime
from typing import Callable, Optional
from libs.result import Result, Return, Error
from src.app.services.credit_cache import CreditCache
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.domain.base import utc_now
from src.domain.credit_policy import DEFAULT_FEATURE_COST, PolicyError, get_credit_costs
from src.domain.user_credits import UserCredits
from .dtos import CreditSummaryDTO, SubscriptionInfoDTO
from .get_user_credits import GetUserCredits

LOW_USAGE_THRESHOLD = 80.0


def usage_percentage(credits: UserCredits) -> float:
    allotment = credits.allocation().monthly_credits
    if allotment <= 0:
        return 0.0 if credits.available_credits > 0 else 100.0
    used = (allotment - credits.available_credits) / allotment * 100
    return min(100.0, max(0.0, used))


def build_summary(credits: UserCredits) -> CreditSummaryDTO:
    allocation = credits.allocation()
    costs = get_credit_costs(credits.user_type)
    percentage = usage_percentage(credits)
    features = sorted(allocation.ai_features, key=lambda f: f.value)
    return CreditSummaryDTO(
        user_id=credits.user_id,
        remaining_credits=credits.available_credits,
        refreshable_credits=credits.refreshable_credits,
        bonus_credits=credits.bonus_credits,
        total_credits_used=credits.total_credits_used,
        usage_percentage=round(percentage, 2),
        is_low=percentage > LOW_USAGE_THRESHOLD,
        is_exhausted=credits.available_credits <= 0,
        subscription_info=SubscriptionInfoDTO(
            user_type=credits.user_type.value,
            subscription_tier=credits.subscription_tier.value,
            monthly_credits=allocation.monthly_credits,
            credit_refresh=allocation.credit_refresh,
            rollover_credits=allocation.rollover_credits,
            ai_features=[f.value for f in features],
        ),
        feature_costs={f.value: costs.get(f, DEFAULT_FEATURE_COST) for f in features},
        can_use_feature={
            f.value: credits.available_credits >= costs.get(f, DEFAULT_FEATURE_COST) for f in features
        },
        last_credit_refresh=credits.last_credit_refresh,
    )


class GetCreditSummary:
    """Use Case: Summarize a user's ledger; None when there is no ledger"""

    def __init__(
        self,
        uow: UnitOfWork,
        credits_repo: UserCreditsRepository,
        cache: Optional[CreditCache] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.get_credits = GetUserCredits(uow, credits_repo, cache=cache, clock=clock)

    async def execute(self, user_id: str) -> Result[Optional[CreditSummaryDTO]]:
        result = await self.get_credits.execute(user_id)
        if result.is_err():
            return result
        if result.value is None:
            return Return.ok(None)

        try:
            return Return.ok(build_summary(result.value))
        except PolicyError as e:
            return Return.err(
                Error(code="SUMMARY_FAILED", message="Failed to summarize credits", reason=str(e))
            )
