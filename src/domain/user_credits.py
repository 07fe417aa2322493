"""User Credits Domain Entity

One ledger per user: a refreshable allotment bucket that is reset on the
tier's cadence, a bonus bucket that never expires, and lifetime usage.
Transactions live in the append-only credit_transactions table.
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field
from sqlalchemy import CheckConstraint
from src.domain.base import BaseModel, utc_now
from src.domain.credit_policy import (
    AIFeature,
    CreditAllocation,
    SubscriptionTier,
    UserType,
    get_feature_cost,
    get_subscription_credits,
    is_refresh_due,
)


class UserCredits(BaseModel, table=True):
    """
    User Credits - per-user credit ledger

    Domain Rules:
    - One ledger per user (user_id is unique)
    - refreshable_credits and bonus_credits are never negative
    - Deductions take from refreshable_credits first, then bonus_credits
    - total_credits_used only grows, and only by spent amounts
    - version increments on every balance write (compare-and-set)
    """

    __tablename__ = "user_credits"
    __table_args__ = (
        CheckConstraint("refreshable_credits >= 0", name="refreshable_credits_non_negative"),
        CheckConstraint("bonus_credits >= 0", name="bonus_credits_non_negative"),
        CheckConstraint("total_credits_used >= 0", name="total_credits_used_non_negative"),
    )

    id: Optional[int] = Field(
        default=None,
        primary_key=True,
        description="Ledger identifier (auto-increment)"
    )

    user_id: str = Field(
        foreign_key="users.id",
        index=True,
        unique=True,
        description="User ID (unique - one ledger per user)"
    )

    user_type: UserType = Field(
        default=UserType.COUPLE,
        description="User type the policy row is selected by"
    )

    subscription_tier: SubscriptionTier = Field(
        default=SubscriptionTier.FREE,
        description="Subscription tier the policy row is selected by"
    )

    refreshable_credits: int = Field(
        default=0,
        description="Allotment bucket, reset to the tier allotment on refresh"
    )

    bonus_credits: int = Field(
        default=0,
        description="Purchased or granted credits, never refreshed"
    )

    total_credits_used: int = Field(
        default=0,
        description="Lifetime credits spent"
    )

    last_credit_refresh: datetime = Field(
        default_factory=utc_now,
        description="Last reset of the refreshable bucket"
    )

    version: int = Field(
        default=1,
        description="Incremented on every balance write"
    )

    created_at: datetime = Field(
        default_factory=utc_now,
        description="Ledger creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=utc_now,
        description="Last balance update timestamp"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "id": 1,
                "user_id": "user_123",
                "user_type": "couple",
                "subscription_tier": "free",
                "refreshable_credits": 15,
                "bonus_credits": 10,
                "total_credits_used": 42,
                "last_credit_refresh": "2024-01-01T00:00:00Z",
                "version": 7,
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z"
            }
        }

    @property
    def available_credits(self) -> int:
        return self.refreshable_credits + self.bonus_credits

    def allocation(self) -> CreditAllocation:
        return get_subscription_credits(self.user_type, self.subscription_tier)

    def has_feature(self, feature: AIFeature) -> bool:
        return self.allocation().includes(AIFeature(feature))

    def feature_cost(self, feature: AIFeature) -> int:
        return get_feature_cost(self.user_type, feature)

    def refresh_due(self, now: datetime) -> bool:
        return is_refresh_due(self.allocation().credit_refresh, self.last_credit_refresh, now)

    def split_deduction(self, cost: int) -> tuple[int, int]:
        """
        Split a cost across the two buckets

        Returns:
            (from_refreshable, from_bonus)

        Raises:
            ValueError: if the buckets together cannot cover the cost
        """
        if cost > self.available_credits:
            raise ValueError(f"cost {cost} exceeds available {self.available_credits}")
        from_refreshable = min(self.refreshable_credits, cost)
        return from_refreshable, cost - from_refreshable
