from .base import BaseModel, generate_uuid, utc_now
from .credit_policy import (
    AIFeature,
    CreditAllocation,
    PolicyError,
    RefreshCadence,
    SubscriptionTier,
    UserType,
)
from .user_profile import UserProfile
from .user_credits import UserCredits
from .credit_transaction import CreditTransaction, TransactionType

__all__ = [
    "BaseModel",
    "generate_uuid",
    "utc_now",
    "AIFeature",
    "CreditAllocation",
    "PolicyError",
    "RefreshCadence",
    "SubscriptionTier",
    "UserType",
    "UserProfile",
    "UserCredits",
    "CreditTransaction",
    "TransactionType",
]
