"""Credit Service

Facade over the credit use cases for callers that want plain answers
(bool / None / DTO) instead of Result objects: the request-gating
middleware, the scheduled workers and other application code.

Each call opens its own store (session + repositories) through the
injected factory and closes it before returning.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncContextManager, Callable, Dict, List, Optional
from libs.result import Error, Result
from src.app.repositories.user_profile_repository import UserProfileRepository
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from src.app.services.credit_cache import CreditCache
from src.app.services.unit_of_work import UnitOfWork
from src.app.use_cases.credits import (
    AddCredits,
    AddCreditsCommandDTO,
    ChangeSubscription,
    ChangeSubscriptionCommandDTO,
    CheckFeatureAccess,
    CreditSummaryDTO,
    CreditTransactionDTO,
    CreditValidationResultDTO,
    DEFAULT_MAX_ATTEMPTS,
    DeductCredits,
    DeductCreditsCommandDTO,
    GetCreditHistory,
    GetCreditSummary,
    GetUserCredits,
    InitializeCreditsCommandDTO,
    InitializeUserCredits,
    ReconcileUsage,
    RefreshBatchResultDTO,
    RefreshDueCredits,
    ResetCreditsResultDTO,
    ResetRefreshableCredits,
    UsageReconciliationResultDTO,
    ValidateCredits,
)
from src.app.use_cases.credits.get_credit_history import DEFAULT_HISTORY_LIMIT
from src.app.use_cases.credits.refresh_due_credits import DEFAULT_BATCH_SIZE
from src.domain.base import utc_now
from src.domain.credit_policy import AIFeature, SubscriptionTier, UserType
from src.domain.credit_transaction import MetadataValue
from src.domain.user_credits import UserCredits

logger = logging.getLogger(__name__)


@dataclass
class CreditStore:
    """One session's worth of unit of work and repositories"""
    uow: UnitOfWork
    profiles: UserProfileRepository
    credits: UserCreditsRepository
    transactions: CreditTransactionRepository


CreditStoreFactory = Callable[[], AsyncContextManager[CreditStore]]


class CreditServiceError(Exception):
    """A read could not be answered because the store failed"""

    def __init__(self, error: Error):
        self.error = error
        super().__init__(f"{error.code}: {error.message}")


class CreditService:
    """
    Credit service operations

    Business rejections come back as False / None; only store faults on
    reads raise CreditServiceError. Write failures are logged and reported
    as False so callers never have to handle them.
    """

    def __init__(
        self,
        store_factory: CreditStoreFactory,
        cache: Optional[CreditCache] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store_factory = store_factory
        self.cache = cache
        self.max_attempts = max_attempts
        self.clock = clock

    @staticmethod
    def _unwrap(result: Result, operation: str):
        if result.is_err():
            logger.error(f"{operation} failed: {result.error.message} ({result.error.reason})")
            raise CreditServiceError(result.error)
        return result.value

    async def initialize_user_credits(
        self,
        user_id: str,
        user_type: Optional[UserType] = None,
        subscription_tier: Optional[SubscriptionTier] = None,
    ) -> UserCredits:
        """
        Get the user's ledger, creating it on first use

        Raises:
            CreditServiceError: USER_NOT_FOUND for a user without a profile,
                or a store failure
        """
        async with self.store_factory() as store:
            use_case = InitializeUserCredits(store.uow, store.profiles, store.credits, clock=self.clock)
            result = await use_case.execute(
                InitializeCreditsCommandDTO(
                    user_id=user_id, user_type=user_type, subscription_tier=subscription_tier
                )
            )
        if self.cache is not None:
            self.cache.invalidate(user_id)
        return self._unwrap(result, "initialize_user_credits")

    async def get_user_credits(self, user_id: str) -> Optional[UserCredits]:
        async with self.store_factory() as store:
            use_case = GetUserCredits(store.uow, store.credits, cache=self.cache, clock=self.clock)
            result = await use_case.execute(user_id)
        return self._unwrap(result, "get_user_credits")

    async def validate_credits(self, user_id: str, feature: AIFeature) -> Optional[CreditValidationResultDTO]:
        """
        Balance check for one use of feature

        Returns:
            CreditValidationResultDTO, None when the user does not exist
        """
        async with self.store_factory() as store:
            use_case = ValidateCredits(store.uow, store.profiles, store.credits, clock=self.clock)
            result = await use_case.execute(user_id, feature)
        if result.is_err() and result.error.code == "USER_NOT_FOUND":
            return None
        return self._unwrap(result, "validate_credits")

    async def deduct_credits(
        self,
        user_id: str,
        feature: AIFeature,
        metadata: Optional[Dict[str, MetadataValue]] = None,
    ) -> bool:
        """False means nothing was written"""
        async with self.store_factory() as store:
            use_case = DeductCredits(
                store.uow, store.profiles, store.credits, store.transactions,
                cache=self.cache, max_attempts=self.max_attempts, clock=self.clock,
            )
            result = await use_case.execute(
                DeductCreditsCommandDTO(user_id=user_id, feature=feature, metadata=metadata)
            )
        if result.is_err():
            logger.warning(f"Credits not deducted for user {user_id} ({feature}): {result.error.message}")
            return False
        return True

    async def add_credits(
        self,
        user_id: str,
        amount: int,
        type: str = "purchased",
        description: Optional[str] = None,
        metadata: Optional[Dict[str, MetadataValue]] = None,
    ) -> bool:
        async with self.store_factory() as store:
            use_case = AddCredits(
                store.uow, store.profiles, store.credits, store.transactions,
                cache=self.cache, max_attempts=self.max_attempts, clock=self.clock,
            )
            result = await use_case.execute(
                AddCreditsCommandDTO(
                    user_id=user_id, amount=amount, type=type,
                    description=description, metadata=metadata,
                )
            )
        if result.is_err():
            logger.warning(f"Credits not added for user {user_id}: {result.error.message}")
            return False
        return True

    async def get_credit_history(
        self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT, offset: int = 0
    ) -> List[CreditTransactionDTO]:
        async with self.store_factory() as store:
            result = await GetCreditHistory(store.transactions).execute(user_id, limit=limit, offset=offset)
        return self._unwrap(result, "get_credit_history").transactions

    async def has_feature_access(self, user_id: str, feature: AIFeature) -> bool:
        async with self.store_factory() as store:
            result = await CheckFeatureAccess(store.profiles, store.credits).execute(user_id, feature)
        return self._unwrap(result, "has_feature_access").has_access

    async def get_credit_summary(self, user_id: str) -> Optional[CreditSummaryDTO]:
        async with self.store_factory() as store:
            use_case = GetCreditSummary(store.uow, store.credits, cache=self.cache, clock=self.clock)
            result = await use_case.execute(user_id)
        return self._unwrap(result, "get_credit_summary")

    async def can_use_feature(self, user_id: str, feature: AIFeature) -> bool:
        """Feature in plan and affordable right now"""
        if not await self.has_feature_access(user_id, feature):
            return False
        validation = await self.validate_credits(user_id, feature)
        return validation is not None and validation.can_proceed

    async def reset_refreshable_credits(self, user_id: str) -> Optional[ResetCreditsResultDTO]:
        """None when the user has no ledger or the write failed"""
        async with self.store_factory() as store:
            use_case = ResetRefreshableCredits(
                store.uow, store.credits, store.transactions,
                cache=self.cache, max_attempts=self.max_attempts, clock=self.clock,
            )
            result = await use_case.execute(user_id)
        if result.is_err():
            logger.warning(f"Credits not reset for user {user_id}: {result.error.message}")
            return None
        return result.value

    async def change_subscription(
        self, user_id: str, user_type: UserType, subscription_tier: SubscriptionTier
    ) -> Optional[UserCredits]:
        async with self.store_factory() as store:
            use_case = ChangeSubscription(
                store.uow, store.profiles, store.credits, store.transactions,
                cache=self.cache, max_attempts=self.max_attempts, clock=self.clock,
            )
            result = await use_case.execute(
                ChangeSubscriptionCommandDTO(
                    user_id=user_id, user_type=user_type, subscription_tier=subscription_tier
                )
            )
        if result.is_err():
            logger.warning(f"Subscription not changed for user {user_id}: {result.error.message}")
            return None
        return result.value

    async def refresh_due_credits(
        self, batch_size: int = DEFAULT_BATCH_SIZE, cursor: Optional[str] = None
    ) -> RefreshBatchResultDTO:
        async with self.store_factory() as store:
            use_case = RefreshDueCredits(store.uow, store.credits, cache=self.cache, clock=self.clock)
            result = await use_case.execute(batch_size=batch_size, cursor=cursor)
        return self._unwrap(result, "refresh_due_credits")

    async def reconcile_usage(self) -> UsageReconciliationResultDTO:
        async with self.store_factory() as store:
            result = await ReconcileUsage(store.credits, store.transactions).execute()
        return self._unwrap(result, "reconcile_usage")
