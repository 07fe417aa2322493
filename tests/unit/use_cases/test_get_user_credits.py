"""Unit tests for GetUserCredits use case and the read cache"""

import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

from src.app.services.credit_cache import CreditCache
from src.app.use_cases.credits import GetUserCredits


class FakeMonotonic:
    def __init__(self):
        self.value = 1000.0

    def __call__(self):
        return self.value

    def advance(self, seconds: float):
        self.value += seconds


@pytest.fixture
def ticker():
    return FakeMonotonic()


class TestCreditCache:

    def test_entry_served_until_ttl(self, ticker, make_credits):
        cache = CreditCache(ttl_seconds=30, clock=ticker)
        credits = make_credits()
        cache.set("user_123", credits)

        ticker.advance(29.9)
        assert cache.get("user_123") is credits

        ticker.advance(0.1)
        assert cache.get("user_123") is None
        assert len(cache) == 0

    def test_invalidate(self, ticker, make_credits):
        cache = CreditCache(ttl_seconds=30, clock=ticker)
        cache.set("user_123", make_credits())

        cache.invalidate("user_123")
        cache.invalidate("never_cached")

        assert "user_123" not in cache

    def test_zero_ttl_disables(self, ticker, make_credits):
        cache = CreditCache(ttl_seconds=0, clock=ticker)
        cache.set("user_123", make_credits())

        assert not cache.enabled
        assert cache.get("user_123") is None

    def test_expired_entries_of_other_users_purged_on_set(self, ticker, make_credits):
        """
        Given: Entries for many users that are never read again
        When: They expire and another user is cached
        Then: Only the fresh entry remains
        """
        cache = CreditCache(ttl_seconds=30, clock=ticker)
        for i in range(50):
            cache.set(f"user_{i}", make_credits(user_id=f"user_{i}"))

        ticker.advance(31)
        cache.set("user_fresh", make_credits(user_id="user_fresh"))

        assert len(cache) == 1
        assert "user_fresh" in cache

    def test_oldest_entry_evicted_past_max_entries(self, ticker, make_credits):
        cache = CreditCache(ttl_seconds=30, clock=ticker, max_entries=2)
        for user_id in ["a", "b"]:
            cache.set(user_id, make_credits(user_id=user_id))
            ticker.advance(1)
        cache.set("a", make_credits(user_id="a"))
        cache.set("c", make_credits(user_id="c"))

        assert len(cache) == 2
        assert "b" not in cache
        assert "a" in cache and "c" in cache

    def test_clear(self, ticker, make_credits):
        cache = CreditCache(clock=ticker)
        cache.set("a", make_credits(user_id="a"))
        cache.set("b", make_credits(user_id="b"))

        cache.clear()

        assert len(cache) == 0


@pytest.mark.asyncio
class TestGetUserCredits:

    async def test_returns_none_without_ledger(self, mock_uow, clock):
        credits_repo = MagicMock()
        credits_repo.get_by_user_id = AsyncMock(return_value=None)

        result = await GetUserCredits(mock_uow, credits_repo, clock=clock).execute("user_123")

        assert result.is_ok()
        assert result.value is None

    async def test_refresh_on_read(self, memory_uow, memory_credits, make_credits, clock, now):
        """
        Given: A ledger whose daily refresh is due, with bonus credits
        When: It is read
        Then: Refreshable is reset (not incremented), bonus untouched, write committed
        """
        memory_credits.put(make_credits(refreshable=4, bonus=9, last_refresh=now - timedelta(hours=30)))

        result = await GetUserCredits(memory_uow, memory_credits, clock=clock).execute("user_123")

        assert result.value.refreshable_credits == 15
        assert result.value.bonus_credits == 9
        assert result.value.last_credit_refresh == now
        assert memory_credits.rows["user_123"]["refreshable_credits"] == 15
        assert memory_uow.commits == 1

    async def test_not_due_is_not_written(self, memory_uow, memory_credits, make_credits, clock):
        memory_credits.put(make_credits(refreshable=4))

        result = await GetUserCredits(memory_uow, memory_credits, clock=clock).execute("user_123")

        assert result.value.refreshable_credits == 4
        assert memory_uow.commits == 0

    async def test_cached_read_skips_store(self, mock_uow, ticker, make_credits, clock):
        cache = CreditCache(clock=ticker)
        cached = make_credits()
        cache.set("user_123", cached)
        credits_repo = MagicMock()
        credits_repo.get_by_user_id = AsyncMock()

        result = await GetUserCredits(mock_uow, credits_repo, cache=cache, clock=clock).execute("user_123")

        assert result.value is cached
        credits_repo.get_by_user_id.assert_not_called()

    async def test_cached_entry_bypassed_when_refresh_due(
        self, memory_uow, memory_credits, ticker, make_credits, clock, now
    ):
        cache = CreditCache(clock=ticker)
        stale = make_credits(refreshable=0, last_refresh=now - timedelta(days=3))
        cache.set("user_123", stale)
        memory_credits.put(stale)

        result = await GetUserCredits(memory_uow, memory_credits, cache=cache, clock=clock).execute("user_123")

        assert result.value.refreshable_credits == 15
        assert cache.get("user_123").refreshable_credits == 15

    async def test_store_failure(self, mock_uow, clock):
        credits_repo = MagicMock()
        credits_repo.get_by_user_id = AsyncMock(side_effect=Exception("db down"))

        result = await GetUserCredits(mock_uow, credits_repo, clock=clock).execute("user_123")

        assert result.is_err()
        assert result.error.code == "GET_CREDITS_FAILED"
