"""Data Transfer Objects for Credit Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field
from src.domain.credit_policy import AIFeature, RefreshCadence, SubscriptionTier, UserType
from src.domain.credit_transaction import CreditTransaction, MetadataValue
from src.domain.user_credits import UserCredits


class InitializeCreditsCommandDTO(BaseModel):
    """
    Command DTO for initializing a ledger

    When user_type or subscription_tier is omitted the profile's values are used.
    """

    user_id: str = Field(..., description="User identifier")

    user_type: Optional[UserType] = Field(
        default=None,
        description="User type (defaults to the profile's)"
    )

    subscription_tier: Optional[SubscriptionTier] = Field(
        default=None,
        description="Subscription tier (defaults to the profile's)"
    )


class DeductCreditsCommandDTO(BaseModel):
    """
    Command DTO for deducting the cost of one feature use

    Used as input to DeductCredits use case.
    """

    user_id: str = Field(..., description="User identifier")

    feature: AIFeature = Field(..., description="AI feature being used")

    metadata: Optional[Dict[str, MetadataValue]] = Field(
        default=None,
        description="Opaque audit data stored on the transaction"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "user_123",
                "feature": "todo_generation",
                "metadata": {"request_id": "req_1", "user_agent": "curl/8.0"}
            }
        }


class AddCreditsCommandDTO(BaseModel):
    """
    Command DTO for adding credits to the bonus bucket

    Used as input to AddCredits use case.
    """

    user_id: str = Field(..., description="User identifier")

    amount: int = Field(..., description="Credits to add (must be > 0)")

    type: Literal["purchased", "bonus"] = Field(
        default="purchased",
        description="Transaction type recorded for the addition"
    )

    description: Optional[str] = Field(
        default=None,
        description="Transaction description (defaults to 'Added <n> credits')"
    )

    metadata: Optional[Dict[str, MetadataValue]] = Field(
        default=None,
        description="Opaque audit data stored on the transaction"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "user_123",
                "amount": 50,
                "type": "purchased",
                "description": "Credit pack purchase",
                "metadata": {"order_id": "ord_42"}
            }
        }


class ChangeSubscriptionCommandDTO(BaseModel):
    user_id: str = Field(..., description="User identifier")
    user_type: UserType = Field(..., description="New user type")
    subscription_tier: SubscriptionTier = Field(..., description="New subscription tier")


class CreditTransactionDTO(BaseModel):
    id: str
    user_id: str
    type: str
    amount: int
    feature: str
    timestamp: datetime
    metadata: Dict[str, MetadataValue] = Field(default_factory=dict)
    description: Optional[str] = None

    @classmethod
    def from_entity(cls, transaction: CreditTransaction) -> "CreditTransactionDTO":
        return cls(
            id=transaction.id,
            user_id=transaction.user_id,
            type=transaction.type.value,
            amount=transaction.amount,
            feature=transaction.feature,
            timestamp=transaction.timestamp,
            metadata=transaction.details or {},
            description=transaction.description,
        )


class UserCreditsDTO(BaseModel):
    """
    Response DTO for a ledger

    Returned by the ledger query routes.
    """

    user_id: str = Field(..., description="User identifier")
    user_type: str = Field(..., description="User type")
    subscription_tier: str = Field(..., description="Subscription tier")
    refreshable_credits: int = Field(..., description="Allotment bucket")
    bonus_credits: int = Field(..., description="Bonus bucket")
    total_credits_used: int = Field(..., description="Lifetime credits spent")
    available_credits: int = Field(..., description="refreshable + bonus")
    last_credit_refresh: datetime = Field(..., description="Last reset of the allotment bucket")
    created_at: datetime
    updated_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "user_123",
                "user_type": "couple",
                "subscription_tier": "free",
                "refreshable_credits": 12,
                "bonus_credits": 10,
                "total_credits_used": 3,
                "available_credits": 22,
                "last_credit_refresh": "2024-01-01T00:00:00Z",
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z"
            }
        }

    @classmethod
    def from_entity(cls, credits: UserCredits) -> "UserCreditsDTO":
        return cls(
            user_id=credits.user_id,
            user_type=credits.user_type.value,
            subscription_tier=credits.subscription_tier.value,
            refreshable_credits=credits.refreshable_credits,
            bonus_credits=credits.bonus_credits,
            total_credits_used=credits.total_credits_used,
            available_credits=credits.available_credits,
            last_credit_refresh=credits.last_credit_refresh,
            created_at=credits.created_at,
            updated_at=credits.updated_at,
        )


class CreditValidationResultDTO(BaseModel):
    """
    Outcome of a balance check for one feature use

    Validation never mutates balances.
    """

    has_enough_credits: bool = Field(..., description="available >= cost")
    required_credits: int = Field(..., description="Cost of the feature")
    current_credits: int = Field(..., description="refreshable + bonus")
    remaining_credits: int = Field(..., description="max(0, available - cost)")
    can_proceed: bool = Field(..., description="Same as has_enough_credits")
    message: str = Field(..., description="Human readable outcome")


class DeductResultDTO(BaseModel):
    user_id: str
    feature: str
    amount: int
    from_refreshable: int
    from_bonus: int
    remaining_credits: int
    transaction_id: str


class AddCreditsResultDTO(BaseModel):
    user_id: str
    amount: int
    bonus_credits: int
    transaction_id: str


class ResetCreditsResultDTO(BaseModel):
    user_id: str
    previous_refreshable_credits: int
    refreshable_credits: int
    transaction_id: Optional[str] = None


class CreditHistoryResponseDTO(BaseModel):
    user_id: str
    transactions: List[CreditTransactionDTO]
    total: int
    limit: int
    offset: int


class FeatureAccessDTO(BaseModel):
    user_id: str
    feature: str
    has_access: bool
    cost: int


class SubscriptionInfoDTO(BaseModel):
    user_type: str
    subscription_tier: str
    monthly_credits: int
    credit_refresh: RefreshCadence
    rollover_credits: int
    ai_features: List[str]


class CreditSummaryDTO(BaseModel):
    """
    Ledger query surface

    usage_percentage is the share of the tier allotment no longer available,
    clamped to [0, 100].
    """

    user_id: str = Field(..., description="User identifier")
    remaining_credits: int = Field(..., description="refreshable + bonus")
    refreshable_credits: int
    bonus_credits: int
    total_credits_used: int
    usage_percentage: float = Field(..., ge=0, le=100)
    is_low: bool = Field(..., description="More than 80% of the allotment used")
    is_exhausted: bool = Field(..., description="No credits left")
    subscription_info: SubscriptionInfoDTO
    feature_costs: Dict[str, int] = Field(
        default_factory=dict,
        description="Cost of each feature in the plan"
    )
    can_use_feature: Dict[str, bool] = Field(
        default_factory=dict,
        description="Whether each feature in the plan is affordable right now"
    )
    last_credit_refresh: datetime


class RefreshBatchResultDTO(BaseModel):
    """
    Result of one page of the scheduled refresh

    Returned by RefreshDueCredits use case.
    """

    total: int = Field(..., description="Ledgers in this page")
    processed: int
    refreshed: int
    skipped: int
    failed: int
    errors: List[str] = Field(default_factory=list)
    cursor: Optional[str] = Field(default=None, description="Pass back to continue after this page")
    has_more: bool
    execution_time_ms: int = 0


class UsageDiscrepancyDTO(BaseModel):
    user_id: str
    total_credits_used: int
    spent_sum: int
    discrepancy: int


class UsageReconciliationResultDTO(BaseModel):
    """
    Result DTO for usage reconciliation

    Returned by ReconcileUsage use case.
    """

    total_ledgers_checked: int = Field(..., description="Number of ledgers checked")
    discrepancies_found: int = Field(..., description="Number of discrepancies found")
    discrepancies: List[UsageDiscrepancyDTO] = Field(
        default_factory=list,
        description="List of discrepancies found"
    )
    reconciliation_time: datetime = Field(..., description="Timestamp of reconciliation")
    execution_time_ms: int = Field(..., description="Execution time in milliseconds")
