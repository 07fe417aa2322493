"""Unit tests for CreditRefreshWorker

Tests cover:
- Worker initialization with configuration
- run_once walking every page via the cursor
- Refresh disabled scenario
- run_forever surviving a failed cycle
- Shutdown and cleanup
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.app.use_cases.credits import RefreshBatchResultDTO
from src.worker.credit_refresh import CreditRefreshWorker


def page(total, refreshed, skipped=0, failed=0, errors=None, cursor=None, has_more=False):
    return RefreshBatchResultDTO(
        total=total,
        processed=refreshed + skipped,
        refreshed=refreshed,
        skipped=skipped,
        failed=failed,
        errors=errors or [],
        cursor=cursor,
        has_more=has_more,
    )


@pytest.fixture
def mock_credit_service():
    return MagicMock()


@pytest.fixture
def worker(mock_credit_service):
    with patch("src.worker.credit_refresh.create_async_engine") as mock_create_engine:
        mock_create_engine.return_value = MagicMock(dispose=AsyncMock())
        yield CreditRefreshWorker(
            db_uri="sqlite+aiosqlite:///:memory:",
            batch_size=2,
            credit_service=mock_credit_service,
        )


class TestCreditRefreshWorkerInit:

    @patch("src.worker.credit_refresh.ApplicationConfig")
    @patch("src.worker.credit_refresh.create_async_engine")
    def test_initializes_with_default_config(self, mock_create_engine, mock_app_config):
        """
        Given: No custom configuration provided
        When: Worker is initialized
        Then: Uses DB URI and batch size from ApplicationConfig
        """
        mock_app_config.DB_URI = "postgresql+asyncpg://default@localhost/db"
        mock_app_config.CREDIT_REFRESH_BATCH_SIZE = 250
        mock_app_config.CREDIT_TRANSACTION_MAX_ATTEMPTS = 5
        mock_create_engine.return_value = MagicMock()

        worker = CreditRefreshWorker()

        assert worker.db_uri == "postgresql+asyncpg://default@localhost/db"
        assert worker.batch_size == 250
        assert worker.credit_service is not None
        mock_create_engine.assert_called_once()


@pytest.mark.asyncio
class TestCreditRefreshWorkerRunOnce:

    async def test_walks_all_pages(self, worker, mock_credit_service):
        """
        Given: Two pages of ledgers
        When: run_once is called
        Then: Second page requested with the first page's cursor; totals summed
        """
        mock_credit_service.refresh_due_credits = AsyncMock(
            side_effect=[
                page(total=2, refreshed=1, skipped=1, cursor="u2", has_more=True),
                page(total=1, refreshed=0, failed=1, errors=["u3: row locked"]),
            ]
        )

        with patch("src.worker.credit_refresh.ApplicationConfig") as mock_app_config:
            mock_app_config.CREDIT_REFRESH_ENABLED = True
            result = await worker.run_once()

        assert mock_credit_service.refresh_due_credits.await_count == 2
        second_call = mock_credit_service.refresh_due_credits.await_args_list[1]
        assert second_call.kwargs == {"batch_size": 2, "cursor": "u2"}
        assert (result.total, result.refreshed, result.skipped, result.failed) == (3, 1, 1, 1)
        assert result.errors == ["u3: row locked"]
        assert result.has_more is False

    async def test_disabled_skips_run(self, worker, mock_credit_service):
        mock_credit_service.refresh_due_credits = AsyncMock()

        with patch("src.worker.credit_refresh.ApplicationConfig") as mock_app_config:
            mock_app_config.CREDIT_REFRESH_ENABLED = False
            result = await worker.run_once()

        assert result.total == 0
        mock_credit_service.refresh_due_credits.assert_not_called()


@pytest.mark.asyncio
class TestCreditRefreshWorkerLifecycle:

    async def test_run_forever_survives_failed_cycle(self, worker):
        worker.run_once = AsyncMock(side_effect=[Exception("db down"), page(total=0, refreshed=0)])

        with patch("src.worker.credit_refresh.asyncio.sleep", new=AsyncMock(side_effect=[None, asyncio.CancelledError()])):
            with pytest.raises(asyncio.CancelledError):
                await worker.run_forever(interval_seconds=1)

        assert worker.run_once.await_count == 2

    async def test_shutdown_disposes_engine(self, worker):
        await worker.shutdown()

        worker.engine.dispose.assert_awaited_once()
