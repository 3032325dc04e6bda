"""
Reconciliation cache — time-boxed in-process snapshots of store collections.

One ReconciliationCache per collection (payments, gold payments). An entry is
served while it is both fresh (fetched < refresh_interval ago) and active
(accessed < inactivity_timeout ago); otherwise it is refetched. A failed
refetch falls back to the previous entry when there is one. Writers call
invalidate() so the next read goes to the store.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

from app.core.config import settings
from app.core.exceptions import StoreUnavailable
from app.services.records.service import RecordStoreAdapter
from app.utils.metrics import cache_events_total

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _CacheEntry(Generic[T]):
    data: list[T]
    last_fetched: float
    last_accessed: float


class ReconciliationCache(Generic[T]):
    def __init__(
        self,
        name: str,
        loader: Callable[[], Awaitable[list[T]]],
        refresh_interval: float | None = None,
        inactivity_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._loader = loader
        self.refresh_interval = (
            refresh_interval if refresh_interval is not None else settings.cache_refresh_interval_seconds
        )
        self.inactivity_timeout = (
            inactivity_timeout if inactivity_timeout is not None else settings.cache_inactivity_timeout_seconds
        )
        self._clock = clock
        self._entry: _CacheEntry[T] | None = None
        self._generation = 0
        # single-flight: concurrent misses share one refetch
        self._refresh_lock = asyncio.Lock()

    def _servable(self, entry: _CacheEntry[T] | None, now: float) -> bool:
        return (
            entry is not None
            and now - entry.last_fetched < self.refresh_interval
            and now - entry.last_accessed < self.inactivity_timeout
        )

    @property
    def state(self) -> str:
        """empty / fresh / stale, for health reporting."""
        if self._entry is None:
            return "empty"
        return "fresh" if self._servable(self._entry, self._clock()) else "stale"

    async def get(self) -> list[T]:
        """Cached snapshot if servable, otherwise a refetch (stale entry on failure)."""
        now = self._clock()
        entry = self._entry
        if self._servable(entry, now):
            entry.last_accessed = now
            cache_events_total.labels(collection=self.name, event="hit").inc()
            return entry.data

        async with self._refresh_lock:
            now = self._clock()
            entry = self._entry
            if self._servable(entry, now):
                # another caller refreshed while we waited
                entry.last_accessed = now
                cache_events_total.labels(collection=self.name, event="hit").inc()
                return entry.data
            return await self._refresh(entry)

    async def _refresh(self, previous: _CacheEntry[T] | None) -> list[T]:
        generation = self._generation
        try:
            data = await self._loader()
        except StoreUnavailable as e:
            if previous is None:
                logger.error("cache_refresh_failed_cold", extra={"collection": self.name, "error": str(e)})
                raise
            age = self._clock() - previous.last_fetched
            cache_events_total.labels(collection=self.name, event="stale_served").inc()
            logger.warning(
                "cache_serving_stale",
                extra={"collection": self.name, "age_seconds": round(age, 1), "error": str(e)},
            )
            return previous.data

        now = self._clock()
        if generation == self._generation:
            self._entry = _CacheEntry(data=data, last_fetched=now, last_accessed=now)
        cache_events_total.labels(collection=self.name, event="refresh").inc()
        logger.info("cache_refreshed", extra={"collection": self.name, "count": len(data)})
        return data

    def peek(self) -> list[T] | None:
        """Current snapshot without touching timestamps or the store."""
        return self._entry.data if self._entry is not None else None

    def invalidate(self) -> None:
        """Drop the entry unconditionally; the next get() refetches."""
        self._entry = None
        self._generation += 1
        cache_events_total.labels(collection=self.name, event="invalidated").inc()
        logger.info("cache_invalidated", extra={"collection": self.name})


class CacheRegistry:
    """
    Owns the per-collection caches. Built once at startup (app.main lifespan)
    and handed to services; there is no module-level instance.
    """

    def __init__(self, adapter: RecordStoreAdapter, clock: Callable[[], float] = time.monotonic) -> None:
        self.payments = ReconciliationCache("payments", adapter.list_payments, clock=clock)
        self.gold_payments = ReconciliationCache("gold_payments", adapter.list_gold_payments, clock=clock)

    def states(self) -> dict[str, str]:
        return {"payments": self.payments.state, "gold_payments": self.gold_payments.state}
