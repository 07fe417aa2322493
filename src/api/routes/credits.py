"""Credit API Routes

Ledger query surface and admin operations on user credit ledgers.
"""

from typing import Optional
from fastapi import APIRouter, Body, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from libs.result import Error
from src.api.error import ClientError
from src.api.schemas.credit_request import (
    AddCreditsRequestSchema,
    ChangeSubscriptionRequestSchema,
    InitializeCreditsRequestSchema,
)
from src.app.services.credit_cache import CreditCache
from src.app.use_cases.credits import (
    AddCredits,
    AddCreditsCommandDTO,
    AddCreditsResultDTO,
    ChangeSubscription,
    ChangeSubscriptionCommandDTO,
    CheckFeatureAccess,
    CreditHistoryResponseDTO,
    CreditSummaryDTO,
    FeatureAccessDTO,
    GetCreditHistory,
    GetCreditSummary,
    GetUserCredits,
    InitializeCreditsCommandDTO,
    InitializeUserCredits,
    ResetCreditsResultDTO,
    ResetRefreshableCredits,
    UserCreditsDTO,
)
from src.adapter.repositories.user_profile_repository import SqlAlchemyUserProfileRepository
from src.adapter.repositories.user_credits_repository import SqlAlchemyUserCreditsRepository
from src.adapter.repositories.credit_transaction_repository import SqlAlchemyCreditTransactionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_credit_cache, get_session
from src.domain.credit_policy import AIFeature

router = APIRouter(prefix="/credits", tags=["Credits"])

_ERROR_STATUS = {
    "USER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "LEDGER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INSUFFICIENT_CREDIT": status.HTTP_402_PAYMENT_REQUIRED,
    "FEATURE_NOT_IN_PLAN": status.HTTP_403_FORBIDDEN,
    "LEDGER_WRITE_CONFLICT": status.HTTP_409_CONFLICT,
}


def _raise(error: Error):
    if error.code in _ERROR_STATUS:
        raise ClientError(error, status_code=_ERROR_STATUS[error.code])
    if error.code.endswith("_FAILED"):
        raise ClientError(error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    raise ClientError(error)


def _ledger_not_found(user_id: str) -> Error:
    return Error(
        code="LEDGER_NOT_FOUND",
        message=f"No credit ledger found for user {user_id}",
    )


@router.get(
    "/{user_id}",
    response_model=UserCreditsDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {
            "description": "User has no credit ledger",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "LEDGER_NOT_FOUND",
                            "message": "No credit ledger found for user user_123"
                        }
                    }
                }
            }
        }
    }
)
async def get_user_credits(
    user_id: str,
    session: AsyncSession = Depends(get_session),
    cache: CreditCache = Depends(get_credit_cache),
):
    """
    Get a user's credit ledger.

    A refresh that has come due is applied before the ledger is returned.

    **Returns:**
    - 200: Ledger
    - 404: User has no ledger
    """
    use_case = GetUserCredits(
        SqlAlchemyUnitOfWork(session), SqlAlchemyUserCreditsRepository(session), cache=cache
    )
    result = await use_case.execute(user_id)

    if result.is_err():
        _raise(result.error)
    if result.value is None:
        _raise(_ledger_not_found(user_id))

    return UserCreditsDTO.from_entity(result.value)


@router.get(
    "/{user_id}/summary",
    response_model=CreditSummaryDTO,
    status_code=status.HTTP_200_OK,
)
async def get_credit_summary(
    user_id: str,
    session: AsyncSession = Depends(get_session),
    cache: CreditCache = Depends(get_credit_cache),
):
    """
    Remaining credits, usage against the allotment and plan details.

    - `usage_percentage`: share of the allotment no longer available, 0-100
    - `is_low`: more than 80% used
    - `is_exhausted`: nothing left
    """
    use_case = GetCreditSummary(
        SqlAlchemyUnitOfWork(session), SqlAlchemyUserCreditsRepository(session), cache=cache
    )
    result = await use_case.execute(user_id)

    if result.is_err():
        _raise(result.error)
    if result.value is None:
        _raise(_ledger_not_found(user_id))

    return result.value


@router.get(
    "/{user_id}/history",
    response_model=CreditHistoryResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def get_credit_history(
    user_id: str,
    limit: int = Query(ApplicationConfig.CREDIT_HISTORY_DEFAULT_LIMIT, ge=0, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    """
    Credit transactions for a user, newest first.

    **Query parameters:**
    - `limit`: Maximum number of transactions to return
    - `offset`: Number of transactions to skip
    """
    use_case = GetCreditHistory(SqlAlchemyCreditTransactionRepository(session))
    result = await use_case.execute(user_id, limit=limit, offset=offset)

    if result.is_err():
        _raise(result.error)

    return result.value


@router.get(
    "/{user_id}/features/{feature}",
    response_model=FeatureAccessDTO,
    status_code=status.HTTP_200_OK,
)
async def get_feature_access(
    user_id: str,
    feature: AIFeature,
    session: AsyncSession = Depends(get_session),
):
    """Whether the feature is in the user's plan, and what one use costs."""
    use_case = CheckFeatureAccess(
        SqlAlchemyUserProfileRepository(session), SqlAlchemyUserCreditsRepository(session)
    )
    result = await use_case.execute(user_id, feature)

    if result.is_err():
        _raise(result.error)

    return result.value


@router.post(
    "/{user_id}/initialize",
    response_model=UserCreditsDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {
            "description": "User not found",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "USER_NOT_FOUND",
                            "message": "User user_123 not found"
                        }
                    }
                }
            }
        }
    }
)
async def initialize_user_credits(
    user_id: str,
    request: Optional[InitializeCreditsRequestSchema] = Body(default=None),
    session: AsyncSession = Depends(get_session),
    cache: CreditCache = Depends(get_credit_cache),
):
    """
    Create the user's ledger, or return the existing one unchanged.

    Omitted `user_type` / `subscription_tier` fall back to the user's profile.
    """
    request = request or InitializeCreditsRequestSchema()
    use_case = InitializeUserCredits(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyUserProfileRepository(session),
        SqlAlchemyUserCreditsRepository(session),
    )
    result = await use_case.execute(
        InitializeCreditsCommandDTO(
            user_id=user_id,
            user_type=request.user_type,
            subscription_tier=request.subscription_tier,
        )
    )
    cache.invalidate(user_id)

    if result.is_err():
        _raise(result.error)

    return UserCreditsDTO.from_entity(result.value)


@router.post(
    "/{user_id}/add",
    response_model=AddCreditsResultDTO,
    status_code=status.HTTP_200_OK,
)
async def add_credits(
    user_id: str,
    request: AddCreditsRequestSchema,
    session: AsyncSession = Depends(get_session),
    cache: CreditCache = Depends(get_credit_cache),
):
    """
    Add purchased or bonus credits.

    Credits land in the bonus bucket, which never expires and is spent after
    the refreshable allotment.

    **Request body:**
    - `amount` (required): Credits to add (must be > 0)
    - `type`: `purchased` (default) or `bonus`
    - `description`, `metadata` (optional): Audit trail
    """
    use_case = AddCredits(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyUserProfileRepository(session),
        SqlAlchemyUserCreditsRepository(session),
        SqlAlchemyCreditTransactionRepository(session),
        cache=cache,
        max_attempts=ApplicationConfig.CREDIT_TRANSACTION_MAX_ATTEMPTS,
    )
    result = await use_case.execute(
        AddCreditsCommandDTO(
            user_id=user_id,
            amount=request.amount,
            type=request.type,
            description=request.description,
            metadata=request.metadata,
        )
    )

    if result.is_err():
        _raise(result.error)

    return result.value


@router.post(
    "/{user_id}/reset",
    response_model=ResetCreditsResultDTO,
    status_code=status.HTTP_200_OK,
)
async def reset_refreshable_credits(
    user_id: str,
    session: AsyncSession = Depends(get_session),
    cache: CreditCache = Depends(get_credit_cache),
):
    """
    Admin: reset the refreshable bucket to the tier allotment.

    Records a bonus transaction flagged `admin_action`; does not count as usage.
    """
    use_case = ResetRefreshableCredits(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyUserCreditsRepository(session),
        SqlAlchemyCreditTransactionRepository(session),
        cache=cache,
        max_attempts=ApplicationConfig.CREDIT_TRANSACTION_MAX_ATTEMPTS,
    )
    result = await use_case.execute(user_id)

    if result.is_err():
        _raise(result.error)

    return result.value


@router.post(
    "/{user_id}/subscription",
    response_model=UserCreditsDTO,
    status_code=status.HTTP_200_OK,
)
async def change_subscription(
    user_id: str,
    request: ChangeSubscriptionRequestSchema,
    session: AsyncSession = Depends(get_session),
    cache: CreditCache = Depends(get_credit_cache),
):
    """
    Move the user to another plan.

    The refreshable bucket keeps its balance until the next refresh.
    """
    use_case = ChangeSubscription(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyUserProfileRepository(session),
        SqlAlchemyUserCreditsRepository(session),
        SqlAlchemyCreditTransactionRepository(session),
        cache=cache,
        max_attempts=ApplicationConfig.CREDIT_TRANSACTION_MAX_ATTEMPTS,
    )
    result = await use_case.execute(
        ChangeSubscriptionCommandDTO(
            user_id=user_id,
            user_type=request.user_type,
            subscription_tier=request.subscription_tier,
        )
    )

    if result.is_err():
        _raise(result.error)

    return UserCreditsDTO.from_entity(result.value)
