"""CheckFeatureAccess Use Case

Plan membership only; balance plays no part.
"""

from libs.result import Result, Return, Error
from src.app.repositories.user_profile_repository import UserProfileRepository
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.domain.credit_policy import AIFeature, PolicyError, get_feature_cost, get_subscription_credits
from .dtos import FeatureAccessDTO


class CheckFeatureAccess:
    """
    Use Case: Is a feature in the user's current plan

    The ledger's plan is authoritative; the profile's plan is used when no
    ledger exists yet. Unknown users have no access.
    """

    def __init__(self, profile_repo: UserProfileRepository, credits_repo: UserCreditsRepository):
        self.profile_repo = profile_repo
        self.credits_repo = credits_repo

    async def execute(self, user_id: str, feature: AIFeature) -> Result[FeatureAccessDTO]:
        try:
            feature = AIFeature(feature)
            plan = await self.credits_repo.get_by_user_id(user_id)
            if plan is None:
                plan = await self.profile_repo.get_by_id(user_id)

            if plan is None:
                return Return.ok(
                    FeatureAccessDTO(user_id=user_id, feature=feature.value, has_access=False, cost=0)
                )

            try:
                allocation = get_subscription_credits(plan.user_type, plan.subscription_tier)
            except PolicyError:
                has_access = False
            else:
                has_access = allocation.includes(feature)

            return Return.ok(
                FeatureAccessDTO(
                    user_id=user_id,
                    feature=feature.value,
                    has_access=has_access,
                    cost=get_feature_cost(plan.user_type, feature),
                )
            )

        except Exception as e:
            return Return.err(
                Error(
                    code="FEATURE_ACCESS_CHECK_FAILED",
                    message="Failed to check feature access",
                    reason=str(e),
                )
            )
