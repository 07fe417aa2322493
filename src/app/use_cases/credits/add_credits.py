"""AddCredits Use Case

Adds purchased or granted credits to the bonus bucket, atomically.
"""

import logging
from datetime import datetime
from typing import Callable, Optional
from libs.result import Result, Return, Error
from src.app.services.credit_cache import CreditCache
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.user_profile_repository import UserProfileRepository
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from src.domain.base import utc_now
from src.domain.credit_policy import BONUS_FEATURE
from src.domain.credit_transaction import CreditTransaction, TransactionType
from src.domain.user_credits import UserCredits
from .dtos import AddCreditsCommandDTO, AddCreditsResultDTO, InitializeCreditsCommandDTO
from .initialize_user_credits import InitializeUserCredits
from .ledger_update import AtomicLedgerUpdate, DEFAULT_MAX_ATTEMPTS

logger = logging.getLogger(__name__)


class AddCredits:
    """
    Use Case: Add credits to the bonus bucket

    Business Rules:
    1. amount must be > 0
    2. Only bonus_credits changes; refreshable and total used are untouched
    3. The transaction records feature "bonus" and the given type
    """

    def __init__(
        self,
        uow: UnitOfWork,
        profile_repo: UserProfileRepository,
        credits_repo: UserCreditsRepository,
        transaction_repo: CreditTransactionRepository,
        cache: Optional[CreditCache] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.uow = uow
        self.cache = cache
        self.initialize = InitializeUserCredits(uow, profile_repo, credits_repo, clock=clock)
        self.ledger = AtomicLedgerUpdate(
            uow, credits_repo, transaction_repo, max_attempts=max_attempts, clock=clock
        )

    async def execute(self, command: AddCreditsCommandDTO) -> Result[AddCreditsResultDTO]:
        if command.amount <= 0:
            return Return.err(
                Error(
                    code="INVALID_AMOUNT",
                    message=f"Amount must be positive, got {command.amount}",
                )
            )

        def add(credits: UserCredits, now: datetime) -> Result[Optional[CreditTransaction]]:
            credits.bonus_credits += command.amount
            return Return.ok(
                CreditTransaction(
                    user_id=credits.user_id,
                    type=TransactionType(command.type),
                    amount=command.amount,
                    feature=BONUS_FEATURE,
                    timestamp=now,
                    details=dict(command.metadata or {}),
                    description=command.description or f"Added {command.amount} credits",
                )
            )

        try:
            initialized = await self.initialize.execute(
                InitializeCreditsCommandDTO(user_id=command.user_id)
            )
            if initialized.is_err():
                return initialized

            result = await self.ledger.apply(command.user_id, add)
            if self.cache is not None:
                self.cache.invalidate(command.user_id)
            if result.is_err():
                return result

            update = result.value
            logger.info(f"Added {command.amount} {command.type} credits to user {command.user_id}")
            return Return.ok(
                AddCreditsResultDTO(
                    user_id=command.user_id,
                    amount=command.amount,
                    bonus_credits=update.credits.bonus_credits,
                    transaction_id=update.transaction.id,
                )
            )

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Failed to add credits for user {command.user_id}: {e}")
            return Return.err(
                Error(
                    code="ADD_CREDIT_FAILED",
                    message="Failed to add credits",
                    reason=str(e),
                )
            )
