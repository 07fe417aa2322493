import asyncio
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.app.repositories.user_profile_repository import UserProfileRepository
from src.app.services.unit_of_work import UnitOfWork
from src.domain.credit_policy import SubscriptionTier, UserType
from src.domain.credit_transaction import CreditTransaction, TransactionType
from src.domain.user_credits import UserCredits
from src.domain.user_profile import UserProfile

NOW = datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Fixed clock for use cases"""
    return lambda: NOW


@pytest.fixture
def mock_uow():
    """Mock unit of work"""
    uow = MagicMock()
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock()
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()
    return uow


@pytest.fixture
def make_credits():
    """Factory for ledgers refreshed an hour before NOW"""

    def _make(
        user_id: str = "user_123",
        user_type: UserType = UserType.COUPLE,
        tier: SubscriptionTier = SubscriptionTier.FREE,
        refreshable: int = 15,
        bonus: int = 0,
        used: int = 0,
        last_refresh: Optional[datetime] = None,
        version: int = 1,
    ) -> UserCredits:
        return UserCredits(
            id=1,
            user_id=user_id,
            user_type=user_type,
            subscription_tier=tier,
            refreshable_credits=refreshable,
            bonus_credits=bonus,
            total_credits_used=used,
            last_credit_refresh=last_refresh or NOW - timedelta(hours=1),
            version=version,
            created_at=NOW - timedelta(days=30),
            updated_at=NOW - timedelta(hours=1),
        )

    return _make


@pytest.fixture
def make_profile():
    def _make(
        user_id: str = "user_123",
        user_type: UserType = UserType.COUPLE,
        tier: SubscriptionTier = SubscriptionTier.FREE,
    ) -> UserProfile:
        return UserProfile(id=user_id, user_type=user_type, subscription_tier=tier)

    return _make


class InMemoryUnitOfWork(UnitOfWork):
    def __init__(self):
        self.commits = 0
        self.rollbacks = 0

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


class InMemoryUserProfileRepository(UserProfileRepository):
    def __init__(self):
        self.profiles: Dict[str, UserProfile] = {}

    async def get_by_id(self, user_id: str) -> Optional[UserProfile]:
        return self.profiles.get(user_id)

    async def create(self, profile: UserProfile) -> UserProfile:
        self.profiles[profile.id] = profile
        return profile

    async def update_subscription(self, user_id, user_type, tier) -> Optional[UserProfile]:
        profile = self.profiles.get(user_id)
        if profile:
            profile.user_type = user_type
            profile.subscription_tier = tier
        return profile


class InMemoryUserCreditsRepository(UserCreditsRepository):
    """
    Stores rows as dicts and hands out copies, so concurrent callers each
    work on their own snapshot. Every call yields to the event loop.
    """

    def __init__(self):
        self.rows: Dict[str, dict] = {}
        self.cas_failures = 0

    def put(self, credits: UserCredits) -> None:
        self.rows[credits.user_id] = credits.model_dump()

    async def get_by_user_id(self, user_id: str, for_update: bool = False) -> Optional[UserCredits]:
        await asyncio.sleep(0)
        row = self.rows.get(user_id)
        return UserCredits(**row) if row else None

    async def create(self, credits: UserCredits) -> UserCredits:
        self.put(credits)
        return credits

    async def update_refresh(self, user_id, refreshable_credits, refreshed_at, expected_version) -> Optional[UserCredits]:
        row = self.rows.get(user_id)
        if row is None or row["version"] != expected_version:
            return None
        row.update(
            refreshable_credits=refreshable_credits,
            last_credit_refresh=refreshed_at,
            version=row["version"] + 1,
        )
        return UserCredits(**row)

    async def compare_and_set(self, credits: UserCredits, expected_version: int) -> bool:
        await asyncio.sleep(0)
        row = self.rows.get(credits.user_id)
        if row is None or row["version"] != expected_version:
            self.cas_failures += 1
            return False
        credits.version = expected_version + 1
        self.put(credits)
        return True

    async def list_user_ids(self, limit: int, after: Optional[str] = None) -> List[str]:
        ids = sorted(uid for uid in self.rows if after is None or uid > after)
        return ids[:limit]

    async def get_all(self) -> List[UserCredits]:
        return [UserCredits(**self.rows[uid]) for uid in sorted(self.rows)]


class InMemoryCreditTransactionRepository(CreditTransactionRepository):
    def __init__(self):
        self.transactions: List[CreditTransaction] = []

    async def create(self, transaction: CreditTransaction) -> CreditTransaction:
        self.transactions.append(transaction)
        return transaction

    async def get_by_user_id(self, user_id: str, limit: int = 50, offset: int = 0) -> Tuple[List[CreditTransaction], int]:
        owned = sorted(
            (t for t in self.transactions if t.user_id == user_id),
            key=lambda t: (t.timestamp, t.id),
            reverse=True,
        )
        return owned[offset:offset + limit], len(owned)

    async def get_spent_sum_by_user(self, user_id: str) -> int:
        return sum(
            t.amount for t in self.transactions
            if t.user_id == user_id and t.type == TransactionType.SPENT
        )


@pytest.fixture
def memory_uow():
    return InMemoryUnitOfWork()


@pytest.fixture
def memory_profiles():
    return InMemoryUserProfileRepository()


@pytest.fixture
def memory_credits():
    return InMemoryUserCreditsRepository()


@pytest.fixture
def memory_transactions():
    return InMemoryCreditTransactionRepository()
