"""SQLAlchemy implementation of UserProfileRepository"""

from typing import Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.user_profile_repository import UserProfileRepository
from src.domain.base import utc_now
from src.domain.credit_policy import SubscriptionTier, UserType
from src.domain.user_profile import UserProfile


class SqlAlchemyUserProfileRepository(UserProfileRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[UserProfile]:
        stmt = select(UserProfile).where(UserProfile.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, profile: UserProfile) -> UserProfile:
        self.session.add(profile)
        await self.session.flush()
        await self.session.refresh(profile)
        return profile

    async def update_subscription(
        self, user_id: str, user_type: UserType, tier: SubscriptionTier
    ) -> Optional[UserProfile]:
        profile = await self.get_by_id(user_id)
        if profile:
            profile.user_type = user_type
            profile.subscription_tier = tier
            profile.updated_at = utc_now()
            self.session.add(profile)
            await self.session.flush()
        return profile
