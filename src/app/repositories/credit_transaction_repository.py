"""Credit Transaction Repository Interface

Defines the contract for credit transaction persistence operations.
"""

from abc import ABC, abstractmethod
from typing import List, Tuple
from src.domain.credit_transaction import CreditTransaction


class CreditTransactionRepository(ABC):
    """
    Repository interface for CreditTransaction persistence

    Transactions are immutable and append-only for audit trail, so the
    interface has no update or delete.
    """

    @abstractmethod
    async def create(self, transaction: CreditTransaction) -> CreditTransaction:
        """
        Append a credit transaction

        Args:
            transaction: CreditTransaction entity to persist

        Returns:
            Created CreditTransaction
        """
        pass

    @abstractmethod
    async def get_by_user_id(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> Tuple[List[CreditTransaction], int]:
        """
        Page through a user's transactions, newest first

        Returns:
            (transactions, total count for the user)
        """
        pass

    @abstractmethod
    async def get_spent_sum_by_user(self, user_id: str) -> int:
        """Sum of amounts over the user's spent transactions"""
        pass
