"""User Profile Domain Entity

The profile record a credit ledger belongs to. A user without a profile
row does not exist as far as the credit system is concerned.
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field
from src.domain.base import BaseModel, utc_now
from src.domain.credit_policy import UserType, SubscriptionTier


class UserProfile(BaseModel, table=True):
    """
    User Profile - owner of exactly one credit ledger

    Domain Rules:
    - user_type and subscription_tier select the credit policy row
    - subscription_tier must belong to the user_type partition
    """

    __tablename__ = "users"

    id: str = Field(
        primary_key=True,
        description="User identifier"
    )

    email: Optional[str] = Field(
        default=None,
        description="Contact email"
    )

    user_type: UserType = Field(
        default=UserType.COUPLE,
        description="User type (couple, planner)"
    )

    subscription_tier: SubscriptionTier = Field(
        default=SubscriptionTier.FREE,
        description="Current subscription tier"
    )

    created_at: datetime = Field(
        default_factory=utc_now,
        description="Profile creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=utc_now,
        description="Last profile update timestamp"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "user_123",
                "email": "sam@example.com",
                "user_type": "couple",
                "subscription_tier": "free",
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z"
            }
        }
