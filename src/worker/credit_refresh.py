"""Scheduled Credit Refresh Background Worker

Resets the refreshable bucket of every ledger whose tier cadence has come due,
so balances are current even for users who have not made a request lately.
Can be run as a standalone script or integrated with a scheduler.
"""

import asyncio
import logging
import time
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.services.credit_store import sqlalchemy_credit_store_factory
from src.app.services.credit_service import CreditService
from src.app.use_cases.credits import RefreshBatchResultDTO

logger = logging.getLogger(__name__)


class CreditRefreshWorker:
    """
    Background worker for the scheduled credit refresh

    Features:
    - Walks all ledgers page by page using the batch cursor
    - Ledgers that are not due are skipped, never rewritten
    - One failing ledger does not stop the run
    - Can run once or continuously

    Usage:
        # Run once
        worker = CreditRefreshWorker()
        result = await worker.run_once()

        # Run continuously
        worker = CreditRefreshWorker()
        await worker.run_forever(interval_seconds=3600)
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        batch_size: Optional[int] = None,
        credit_service: Optional[CreditService] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            batch_size: Ledgers per page (defaults to ApplicationConfig.CREDIT_REFRESH_BATCH_SIZE)
            credit_service: Service to use instead of one built on db_uri
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI
        self.batch_size = batch_size or ApplicationConfig.CREDIT_REFRESH_BATCH_SIZE

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
        self.credit_service = credit_service or CreditService(
            sqlalchemy_credit_store_factory(self.async_session_factory),
            max_attempts=ApplicationConfig.CREDIT_TRANSACTION_MAX_ATTEMPTS,
        )

        logger.info("CreditRefreshWorker initialized")

    async def run_once(self) -> RefreshBatchResultDTO:
        """
        Refresh every due ledger once

        Returns:
            RefreshBatchResultDTO totalled over all pages
        """
        if not ApplicationConfig.CREDIT_REFRESH_ENABLED:
            logger.info("Scheduled credit refresh is disabled, skipping")
            return RefreshBatchResultDTO(
                total=0, processed=0, refreshed=0, skipped=0, failed=0, has_more=False
            )

        start_time = time.time()
        total = processed = refreshed = skipped = failed = 0
        errors: list[str] = []
        cursor = None
        pages = 0

        while True:
            page = await self.credit_service.refresh_due_credits(
                batch_size=self.batch_size, cursor=cursor
            )
            pages += 1
            total += page.total
            processed += page.processed
            refreshed += page.refreshed
            skipped += page.skipped
            failed += page.failed
            errors.extend(page.errors)

            if not page.has_more or page.cursor is None:
                break
            cursor = page.cursor

        execution_time_ms = int((time.time() - start_time) * 1000)

        if failed:
            logger.error(f"Credit refresh finished with {failed} failed ledgers")
            for error in errors:
                logger.error(f"  - {error}")

        logger.info(
            f"Credit refresh complete: {refreshed}/{total} ledgers refreshed "
            f"over {pages} pages in {execution_time_ms}ms"
        )

        return RefreshBatchResultDTO(
            total=total,
            processed=processed,
            refreshed=refreshed,
            skipped=skipped,
            failed=failed,
            errors=errors,
            has_more=False,
            execution_time_ms=execution_time_ms,
        )

    async def run_forever(self, interval_seconds: Optional[int] = None):
        """
        Run the refresh continuously at the specified interval

        Args:
            interval_seconds: Seconds between runs (defaults to
                ApplicationConfig.CREDIT_REFRESH_INTERVAL_SECONDS)
        """
        interval_seconds = interval_seconds or ApplicationConfig.CREDIT_REFRESH_INTERVAL_SECONDS
        logger.info(f"Starting continuous credit refresh with {interval_seconds}s interval")

        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Credit refresh cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("CreditRefreshWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run once
        python -m src.worker.credit_refresh --once

        # Run continuously (default: hourly)
        python -m src.worker.credit_refresh

        # Custom interval and page size
        python -m src.worker.credit_refresh --interval 600 --batch-size 500
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Scheduled Credit Refresh Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=None,
        help="Interval between runs in seconds (default: CREDIT_REFRESH_INTERVAL_SECONDS)"
    )
    parser.add_argument(
        "--batch-size", type=int, default=None,
        help="Ledgers per page (default: CREDIT_REFRESH_BATCH_SIZE)"
    )
    args = parser.parse_args()

    worker = CreditRefreshWorker(batch_size=args.batch_size)

    try:
        if args.once:
            result = await worker.run_once()
            print("Credit refresh complete:")
            print(f"  Ledgers visited: {result.total}")
            print(f"  Refreshed: {result.refreshed}")
            print(f"  Skipped: {result.skipped}")
            print(f"  Failed: {result.failed}")
            print(f"  Execution time: {result.execution_time_ms}ms")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
