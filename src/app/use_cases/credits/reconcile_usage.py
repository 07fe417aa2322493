"""ReconcileUsage Use Case

Checks lifetime usage on every ledger against its spent transactions.
"""

import logging
import time
from libs.result import Result, Return, Error
from src.app.repositories.user_credits_repository import UserCreditsRepository
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from src.domain.base import utc_now
from .dtos import UsageDiscrepancyDTO, UsageReconciliationResultDTO

logger = logging.getLogger(__name__)


class ReconcileUsage:
    """
    Use Case: Reconcile total_credits_used against transaction history

    Business Rules:
    1. For each ledger, total_credits_used must equal the sum of its spent
       transactions
    2. Mismatches are reported and logged
    3. Does NOT modify any data (read-only reconciliation)
    """

    def __init__(
        self,
        credits_repo: UserCreditsRepository,
        transaction_repo: CreditTransactionRepository,
    ):
        self.credits_repo = credits_repo
        self.transaction_repo = transaction_repo

    async def execute(self) -> Result[UsageReconciliationResultDTO]:
        start_time = time.time()
        reconciliation_time = utc_now()

        try:
            logger.info("Starting credit usage reconciliation")

            ledgers = await self.credits_repo.get_all()
            discrepancies: list[UsageDiscrepancyDTO] = []

            for credits in ledgers:
                spent_sum = await self.transaction_repo.get_spent_sum_by_user(credits.user_id)
                if credits.total_credits_used != spent_sum:
                    discrepancy = UsageDiscrepancyDTO(
                        user_id=credits.user_id,
                        total_credits_used=credits.total_credits_used,
                        spent_sum=spent_sum,
                        discrepancy=credits.total_credits_used - spent_sum,
                    )
                    discrepancies.append(discrepancy)
                    logger.warning(
                        f"Usage discrepancy for user {credits.user_id}: "
                        f"total_credits_used={credits.total_credits_used}, "
                        f"spent_sum={spent_sum}"
                    )

            execution_time_ms = int((time.time() - start_time) * 1000)

            if discrepancies:
                logger.warning(
                    f"Reconciliation complete. Found {len(discrepancies)} discrepancies "
                    f"out of {len(ledgers)} ledgers in {execution_time_ms}ms"
                )
            else:
                logger.info(
                    f"Reconciliation complete. All {len(ledgers)} ledgers consistent "
                    f"in {execution_time_ms}ms"
                )

            return Return.ok(
                UsageReconciliationResultDTO(
                    total_ledgers_checked=len(ledgers),
                    discrepancies_found=len(discrepancies),
                    discrepancies=discrepancies,
                    reconciliation_time=reconciliation_time,
                    execution_time_ms=execution_time_ms,
                )
            )

        except Exception as e:
            logger.error(f"Usage reconciliation failed: {e}")
            return Return.err(
                Error(
                    code="RECONCILIATION_FAILED",
                    message="Failed to reconcile credit usage",
                    reason=str(e),
                )
            )
