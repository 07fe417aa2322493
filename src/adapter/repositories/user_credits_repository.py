"""SQLAlchemy implementation of UserCreditsRepository

Balance writes use a versioned UPDATE (compare-and-set). On PostgreSQL the
fresh read also takes a row lock with SELECT FOR UPDATE; SQLite ignores the
lock and relies on the version check alone.
"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy import update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.domain.base import utc_now
from src.domain.user_credits import UserCredits


class SqlAlchemyUserCreditsRepository(UserCreditsRepository):
    """
    SQLAlchemy implementation of UserCreditsRepository

    Features:
    - Fresh reads (populate_existing) with optional row locking
    - Versioned compare-and-set balance writes
    - Cursor pagination over user IDs
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_user_id(self, user_id: str, for_update: bool = False) -> Optional[UserCredits]:
        """
        Retrieve ledger by user ID

        The row is re-read from the database even when the instance is
        already in the identity map, so the caller always sees the stored
        values and version.
        """
        stmt = (
            select(UserCredits)
            .where(UserCredits.user_id == user_id)
            .execution_options(populate_existing=True)
        )

        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, credits: UserCredits) -> UserCredits:
        self.session.add(credits)
        await self.session.flush()
        await self.session.refresh(credits)
        return credits

    async def update_refresh(
        self, user_id: str, refreshable_credits: int, refreshed_at: datetime, expected_version: int
    ) -> Optional[UserCredits]:
        stmt = (
            update(UserCredits)
            .where(
                UserCredits.user_id == user_id,
                UserCredits.version == expected_version,
            )
            .values(
                refreshable_credits=refreshable_credits,
                last_credit_refresh=refreshed_at,
                version=UserCredits.version + 1,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return None
        return await self.get_by_user_id(user_id)

    async def compare_and_set(self, credits: UserCredits, expected_version: int) -> bool:
        """
        Write balances and tier if the stored version is still expected_version

        On success the instance is reloaded so it carries the new version.
        """
        stmt = (
            update(UserCredits)
            .where(
                UserCredits.user_id == credits.user_id,
                UserCredits.version == expected_version,
            )
            .values(
                user_type=credits.user_type,
                subscription_tier=credits.subscription_tier,
                refreshable_credits=credits.refreshable_credits,
                bonus_credits=credits.bonus_credits,
                total_credits_used=credits.total_credits_used,
                last_credit_refresh=credits.last_credit_refresh,
                version=expected_version + 1,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return False

        await self.session.refresh(credits)
        return True

    async def list_user_ids(self, limit: int, after: Optional[str] = None) -> List[str]:
        stmt = select(UserCredits.user_id).order_by(UserCredits.user_id).limit(limit)
        if after is not None:
            stmt = stmt.where(UserCredits.user_id > after)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_all(self) -> List[UserCredits]:
        stmt = select(UserCredits).order_by(UserCredits.user_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
