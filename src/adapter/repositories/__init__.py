from .user_profile_repository import SqlAlchemyUserProfileRepository
from .user_credits_repository import SqlAlchemyUserCreditsRepository
from .credit_transaction_repository import SqlAlchemyCreditTransactionRepository

__all__ = [
    "SqlAlchemyUserProfileRepository",
    "SqlAlchemyUserCreditsRepository",
    "SqlAlchemyCreditTransactionRepository",
]
