"""User Profile Repository Interface"""

from abc import ABC, abstractmethod
from typing import Optional
from src.domain.credit_policy import SubscriptionTier, UserType
from src.domain.user_profile import UserProfile


class UserProfileRepository(ABC):

    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[UserProfile]:
        pass

    @abstractmethod
    async def create(self, profile: UserProfile) -> UserProfile:
        pass

    @abstractmethod
    async def update_subscription(
        self, user_id: str, user_type: UserType, tier: SubscriptionTier
    ) -> Optional[UserProfile]:
        """
        Change the plan recorded on the profile

        Returns:
            Updated UserProfile, None if the profile does not exist
        """
        pass
