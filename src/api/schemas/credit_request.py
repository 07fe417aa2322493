"""Request schemas for Credit API

Pydantic models for validating incoming HTTP requests.
"""

from typing import Dict, Literal, Optional
from pydantic import BaseModel, Field, field_validator
from src.domain.credit_policy import SubscriptionTier, UserType
from src.domain.credit_transaction import MetadataValue


class InitializeCreditsRequestSchema(BaseModel):
    """
    Request schema for initializing a ledger

    Used for POST /credits/{user_id}/initialize. Omitted fields fall back to
    the user's profile.
    """

    user_type: Optional[UserType] = Field(
        default=None,
        description="User type (couple, planner)"
    )

    subscription_tier: Optional[SubscriptionTier] = Field(
        default=None,
        description="Subscription tier within the user type"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "user_type": "planner",
                "subscription_tier": "starter"
            }
        }


class AddCreditsRequestSchema(BaseModel):
    """
    Request schema for adding credits

    Used for POST /credits/{user_id}/add endpoint.
    """

    amount: int = Field(
        ...,
        description="Credits to add to the bonus bucket (must be > 0)"
    )

    type: Literal["purchased", "bonus"] = Field(
        default="purchased",
        description="Transaction type"
    )

    description: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Transaction description"
    )

    metadata: Optional[Dict[str, MetadataValue]] = Field(
        default=None,
        description="Optional metadata for audit trail"
    )

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        if v <= 0:
            raise ValueError("Amount must be greater than 0")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "amount": 50,
                "type": "purchased",
                "description": "Credit pack purchase",
                "metadata": {"order_id": "ord_42"}
            }
        }


class ChangeSubscriptionRequestSchema(BaseModel):
    """Request schema for POST /credits/{user_id}/subscription"""

    user_type: UserType = Field(..., description="User type")
    subscription_tier: SubscriptionTier = Field(..., description="New subscription tier")

    class Config:
        json_schema_extra = {
            "example": {
                "user_type": "couple",
                "subscription_tier": "premium"
            }
        }


class CreditRefreshRequestSchema(BaseModel):
    """Request schema for POST /scheduled-tasks/credit-refresh"""

    cursor: Optional[str] = Field(
        default=None,
        description="Cursor returned by the previous batch"
    )

    batch_size: Optional[int] = Field(
        default=None,
        gt=0,
        le=1000,
        description="Ledgers per batch (defaults to CREDIT_REFRESH_BATCH_SIZE)"
    )
