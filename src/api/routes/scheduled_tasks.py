"""Scheduled Task Routes

Entry points for an external scheduler (cron, Cloud Scheduler, ...) that
prefers HTTP over running the workers in-process.
"""

from typing import Optional
from fastapi import APIRouter, Body, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.api.error import ClientError
from src.api.schemas.credit_request import CreditRefreshRequestSchema
from src.app.services.credit_cache import CreditCache
from src.app.use_cases.credits import RefreshBatchResultDTO, RefreshDueCredits
from src.adapter.repositories.user_credits_repository import SqlAlchemyUserCreditsRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_credit_cache, get_session

router = APIRouter(prefix="/scheduled-tasks", tags=["Scheduled Tasks"])


@router.post(
    "/credit-refresh",
    response_model=RefreshBatchResultDTO,
    status_code=status.HTTP_200_OK,
)
async def credit_refresh(
    request: Optional[CreditRefreshRequestSchema] = Body(default=None),
    session: AsyncSession = Depends(get_session),
    cache: CreditCache = Depends(get_credit_cache),
):
    """
    Refresh one batch of ledgers whose cadence has come due.

    Call again with the returned `cursor` while `has_more` is true.
    """
    request = request or CreditRefreshRequestSchema()
    use_case = RefreshDueCredits(
        SqlAlchemyUnitOfWork(session), SqlAlchemyUserCreditsRepository(session), cache=cache
    )
    result = await use_case.execute(
        batch_size=request.batch_size or ApplicationConfig.CREDIT_REFRESH_BATCH_SIZE,
        cursor=request.cursor,
    )

    if result.is_err():
        raise ClientError(result.error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return result.value
