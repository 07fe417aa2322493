"""User Credits Repository Interface

Defines the contract for credit ledger persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from src.domain.user_credits import UserCredits


class UserCreditsRepository(ABC):
    """
    Repository interface for UserCredits persistence

    Balance writes on the atomic path go through compare_and_set, which only
    applies when the stored version still matches the version that was read.
    """

    @abstractmethod
    async def get_by_user_id(self, user_id: str, for_update: bool = False) -> Optional[UserCredits]:
        """
        Retrieve ledger by user ID

        Args:
            user_id: User identifier
            for_update: If True, read the current row and lock it with
                SELECT FOR UPDATE where the database supports it

        Returns:
            UserCredits if found, None otherwise
        """
        pass

    @abstractmethod
    async def create(self, credits: UserCredits) -> UserCredits:
        """
        Create a new ledger

        Raises:
            IntegrityError: If a ledger already exists for the user
        """
        pass

    @abstractmethod
    async def update_refresh(
        self, user_id: str, refreshable_credits: int, refreshed_at: datetime, expected_version: int
    ) -> Optional[UserCredits]:
        """
        Reset the refreshable bucket outside of a balance transaction

        Applies only while the stored version still equals expected_version, so
        a reset computed from a stale read never overwrites a newer balance.
        Bumps version so an in-flight compare-and-set based on the old bucket
        fails and retries.

        Returns:
            The ledger as stored after the reset, None if nothing was written
        """
        pass

    @abstractmethod
    async def compare_and_set(self, credits: UserCredits, expected_version: int) -> bool:
        """
        Write balances and tier from credits if the stored version is unchanged

        Args:
            credits: Ledger carrying the new values
            expected_version: Version observed when the ledger was read

        Returns:
            True if the row was written (version is now expected_version + 1),
            False if another writer got there first
        """
        pass

    @abstractmethod
    async def list_user_ids(self, limit: int, after: Optional[str] = None) -> List[str]:
        """User IDs in ascending order, starting after the given cursor"""
        pass

    @abstractmethod
    async def get_all(self) -> List[UserCredits]:
        pass
