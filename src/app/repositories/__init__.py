from .user_profile_repository import UserProfileRepository
from .user_credits_repository import UserCreditsRepository
from .credit_transaction_repository import CreditTransactionRepository

__all__ = [
    "UserProfileRepository",
    "UserCreditsRepository",
    "CreditTransactionRepository",
]
