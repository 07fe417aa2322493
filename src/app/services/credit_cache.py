"""Process-local read cache for credit ledgers

Serves plain reads only. Every write path invalidates the user's entry; the
atomic path never reads from it.
"""

import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple
from src.domain.user_credits import UserCredits

DEFAULT_TTL_SECONDS = 30.0
DEFAULT_MAX_ENTRIES = 10000


class CreditCache:
    """
    TTL cache keyed by user ID

    Entries are kept in the order they were stored, so expired entries sit at
    the front and are purged on every store. Past max_entries the oldest entry
    is evicted. The clock is injectable so expiry can be tested without
    sleeping. A TTL of zero or less disables caching.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.max_entries = max(1, max_entries)
        self._entries: "OrderedDict[str, Tuple[float, UserCredits]]" = OrderedDict()

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def _expired(self, stored_at: float, now: float) -> bool:
        return now - stored_at >= self.ttl_seconds

    def get(self, user_id: str) -> Optional[UserCredits]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None

        stored_at, credits = entry
        if self._expired(stored_at, self.clock()):
            del self._entries[user_id]
            return None
        return credits

    def set(self, user_id: str, credits: UserCredits) -> None:
        if not self.enabled:
            return

        now = self.clock()
        self.purge_expired(now)
        self._entries.pop(user_id, None)
        self._entries[user_id] = (now, credits)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Drop expired entries; returns how many were removed"""
        now = self.clock() if now is None else now
        removed = 0
        while self._entries:
            stored_at, _ = next(iter(self._entries.values()))
            if not self._expired(stored_at, now):
                break
            self._entries.popitem(last=False)
            removed += 1
        return removed

    def invalidate(self, user_id: str) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id: str) -> bool:
        return self.get(user_id) is not None
