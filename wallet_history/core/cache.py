"""Short-lived memoization of aggregated transaction lists."""

import time
from dataclasses import dataclass
from typing import Callable, Dict, List, NamedTuple, Optional

import structlog

from wallet_history.models.transaction import CanonicalTransaction, SortOrder

logger = structlog.get_logger(__name__)


class CacheKey(NamedTuple):
    address: str
    chain_id: str
    page: int
    page_size: int
    include_token_transfers: bool
    sort_order: SortOrder = SortOrder.DESC


@dataclass
class CacheEntry:
    data: List[CanonicalTransaction]
    stored_at: float


class TransactionCache:
    """
    Key-scoped cache with a fixed freshness window.

    Eviction is lazy: an entry older than ``ttl_seconds`` reads as absent
    and is dropped on that lookup. ``sweep()`` bounds memory but is not
    needed for correctness.
    """

    def __init__(self, ttl_seconds: float = 120.0, max_entries: int = 1000,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at <= self.ttl_seconds

    def get(self, key: CacheKey) -> Optional[List[CanonicalTransaction]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_fresh(entry, self._clock()):
            return entry.data
        del self._entries[key]
        return None

    def put(self, key: CacheKey, data: List[CanonicalTransaction]) -> None:
        self._entries[key] = CacheEntry(data=list(data), stored_at=self._clock())

    def sweep(self) -> int:
        """Drop stale entries, then the oldest ones above ``max_entries``."""
        now = self._clock()
        stale = [key for key, entry in self._entries.items() if not self._is_fresh(entry, now)]
        for key in stale:
            del self._entries[key]

        overflow = len(self._entries) - self.max_entries
        if overflow > 0:
            oldest = sorted(self._entries.items(), key=lambda item: item[1].stored_at)[:overflow]
            for key, _ in oldest:
                del self._entries[key]

        removed = len(stale) + max(0, overflow)
        if removed:
            logger.debug("Cache swept", removed=removed, remaining=len(self._entries))
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
