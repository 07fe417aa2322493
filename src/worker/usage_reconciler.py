"""Usage Reconciliation Background Worker

Periodically checks each ledger's lifetime usage against the sum of its spent
transactions. Read-only: discrepancies are reported, never corrected.
"""

import asyncio
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.services.credit_store import sqlalchemy_credit_store_factory
from src.app.services.credit_service import CreditService
from src.app.use_cases.credits import UsageReconciliationResultDTO
from src.domain.base import utc_now

logger = logging.getLogger(__name__)


class UsageReconcilerWorker:
    """
    Background worker for credit usage reconciliation

    Usage:
        worker = UsageReconcilerWorker()
        result = await worker.run_once()

        await worker.run_forever(interval_seconds=86400)  # Daily
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        credit_service: Optional[CreditService] = None,
    ):
        self.db_uri = db_uri or ApplicationConfig.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
        self.credit_service = credit_service or CreditService(
            sqlalchemy_credit_store_factory(self.async_session_factory)
        )

        logger.info("UsageReconcilerWorker initialized")

    async def run_once(self) -> UsageReconciliationResultDTO:
        """
        Run reconciliation once

        Raises:
            CreditServiceError: The ledgers could not be read
        """
        if not ApplicationConfig.RECONCILIATION_ENABLED:
            logger.info("Usage reconciliation is disabled, skipping")
            return UsageReconciliationResultDTO(
                total_ledgers_checked=0,
                discrepancies_found=0,
                discrepancies=[],
                reconciliation_time=utc_now(),
                execution_time_ms=0,
            )

        response = await self.credit_service.reconcile_usage()

        if response.discrepancies_found > 0:
            logger.error(f"ALERT: {response.discrepancies_found} usage discrepancies found!")
            for d in response.discrepancies:
                logger.error(
                    f"  - User {d.user_id}: total_credits_used={d.total_credits_used}, "
                    f"spent_sum={d.spent_sum}, diff={d.discrepancy}"
                )

        return response

    async def run_forever(self, interval_seconds: Optional[int] = None):
        interval_seconds = interval_seconds or ApplicationConfig.RECONCILIATION_INTERVAL_SECONDS
        logger.info(f"Starting continuous usage reconciliation with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Reconciliation cycle complete. "
                    f"Checked {result.total_ledgers_checked} ledgers, "
                    f"found {result.discrepancies_found} discrepancies "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Reconciliation cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("UsageReconcilerWorker shutdown complete")


async def main():
    """
    Usage:
        python -m src.worker.usage_reconciler --once
        python -m src.worker.usage_reconciler --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Credit Usage Reconciliation Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=None,
        help="Interval between runs in seconds (default: RECONCILIATION_INTERVAL_SECONDS)"
    )
    args = parser.parse_args()

    worker = UsageReconcilerWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print("Reconciliation complete:")
            print(f"  Total ledgers checked: {result.total_ledgers_checked}")
            print(f"  Discrepancies found: {result.discrepancies_found}")
            print(f"  Execution time: {result.execution_time_ms}ms")
            for d in result.discrepancies:
                print(
                    f"  - User {d.user_id}: used={d.total_credits_used}, "
                    f"spent={d.spent_sum}, diff={d.discrepancy}"
                )
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
