"""
Get Credit History Use Case

Retrieves a user's credit transactions with pagination, newest first.
"""
from libs.result import Result, Return, Error
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from .dtos import CreditHistoryResponseDTO, CreditTransactionDTO

DEFAULT_HISTORY_LIMIT = 50


class GetCreditHistory:
    """
    Use case: View credit history

    Read-only; transactions are ordered by timestamp DESC.
    """

    def __init__(self, transaction_repo: CreditTransactionRepository):
        self.transaction_repo = transaction_repo

    async def execute(
        self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT, offset: int = 0
    ) -> Result[CreditHistoryResponseDTO]:
        if limit < 0 or offset < 0:
            return Return.err(
                Error(
                    code="INVALID_PAGINATION",
                    message=f"limit and offset must be >= 0 (limit={limit}, offset={offset})",
                )
            )

        try:
            transactions, total = await self.transaction_repo.get_by_user_id(
                user_id=user_id,
                limit=limit,
                offset=offset,
            )
        except Exception as e:
            return Return.err(
                Error(
                    code="GET_HISTORY_FAILED",
                    message="Failed to get credit history",
                    reason=str(e),
                )
            )

        return Return.ok(
            CreditHistoryResponseDTO(
                user_id=user_id,
                transactions=[CreditTransactionDTO.from_entity(txn) for txn in transactions],
                total=total,
                limit=limit,
                offset=offset,
            )
        )
