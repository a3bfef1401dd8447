"""Per-provider request quotas on a rolling 24h window.

InMemoryQuotaTracker is enough for a single process. StoreQuotaTracker
keeps the counters in the cache store so several instances share them.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import date

from .cache import CacheStore
from .models import CacheEntry

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 24 * 60 * 60
QUOTA_TOPIC = "__quota__"


class QuotaTracker(ABC):
    """Counts requests per provider against a fixed daily quota."""

    @abstractmethod
    async def acquire(self, provider: str, limit: int) -> bool:
        """Reserve one request. False when the quota is used up."""
        ...

    @abstractmethod
    async def remaining(self, provider: str, limit: int) -> int:
        ...


class InMemoryQuotaTracker(QuotaTracker):
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._counts: dict[str, tuple[int, float]] = {}  # provider -> (count, reset_at)

    def _current(self, provider: str) -> tuple[int, float]:
        now = self._clock()
        count, reset_at = self._counts.get(provider, (0, now + WINDOW_SECONDS))
        if now > reset_at:
            count, reset_at = 0, now + WINDOW_SECONDS
        return count, reset_at

    async def acquire(self, provider: str, limit: int) -> bool:
        count, reset_at = self._current(provider)
        if count >= limit:
            logger.warning("[%s] Rate limit reached (%d/%d)", provider, count, limit)
            self._counts[provider] = (count, reset_at)
            return False
        self._counts[provider] = (count + 1, reset_at)
        return True

    async def remaining(self, provider: str, limit: int) -> int:
        count, _ = self._current(provider)
        return max(0, limit - count)


class StoreQuotaTracker(QuotaTracker):
    """Quota counters persisted as payload documents in the cache store.

    Read-modify-write, so two instances racing on the same provider can
    overshoot by a request or two.
    """

    def __init__(self, store: CacheStore, clock: Callable[[], float] = time.time) -> None:
        self.store = store
        self._clock = clock

    @staticmethod
    def _label(provider: str) -> str:
        return f"quota:{provider}"

    async def _load(self, provider: str) -> tuple[int, float]:
        now = self._clock()
        entry = await self.store.get_latest(QUOTA_TOPIC, [self._label(provider)])
        if entry is None or not entry.payload:
            return 0, now + WINDOW_SECONDS
        count = int(entry.payload.get("count", 0))
        reset_at = float(entry.payload.get("reset_at", 0))
        if now > reset_at:
            return 0, now + WINDOW_SECONDS
        return count, reset_at

    async def _save(self, provider: str, count: int, reset_at: float) -> None:
        # Single row per provider: the date column is pinned
        await self.store.upsert(CacheEntry(
            topic=QUOTA_TOPIC,
            date=date.min,
            provider_label=self._label(provider),
            payload={"count": count, "reset_at": reset_at},
        ))

    async def acquire(self, provider: str, limit: int) -> bool:
        count, reset_at = await self._load(provider)
        if count >= limit:
            logger.warning("[%s] Rate limit reached (%d/%d)", provider, count, limit)
            return False
        await self._save(provider, count + 1, reset_at)
        return True

    async def remaining(self, provider: str, limit: int) -> int:
        count, _ = await self._load(provider)
        return max(0, limit - count)
