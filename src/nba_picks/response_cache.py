"""Read-through response cache with a fresh window and a stale fallback window."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Literal, TypeVar

from nba_picks.errors import UpstreamUnavailable
from nba_picks.time_utils import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

CacheSource = Literal["live", "cache", "stale-cache"]

ODDS_TTL_S = 30 * 60.0
ODDS_STALE_TTL_S = 6 * 60 * 60.0
SCHEDULE_TTL_S = 60.0
SCHEDULE_STALE_TTL_S = 6 * 60 * 60.0


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    fetched_at: datetime
    stored_at: float


@dataclass(frozen=True)
class CachedValue(Generic[T]):
    value: T
    source: CacheSource
    fetched_at: datetime
    error: str | None = None


class ResponseCache:
    """Keyed cache for upstream payloads.

    A hit inside ``ttl_s`` is served as ``cache``. Otherwise the fetcher runs;
    on :class:`UpstreamUnavailable` an entry younger than ``stale_ttl_s`` is
    served as ``stale-cache`` and the error propagates only when none exists.
    Concurrent misses for one key share a single fetch.
    """

    def __init__(
        self,
        *,
        ttl_s: float,
        stale_ttl_s: float,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_s = ttl_s
        self.stale_ttl_s = max(stale_ttl_s, ttl_s)
        self._monotonic = monotonic
        self._entries: dict[str, CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    def _lock_for(self, key: str) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if loop is not self._loop:
            self._loop = loop
            self._locks = {}
        return self._locks.setdefault(key, asyncio.Lock())

    def _age(self, entry: CacheEntry) -> float:
        return self._monotonic() - entry.stored_at

    def get_fresh(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is not None and self._age(entry) <= self.ttl_s:
            return entry
        return None

    def get_stale(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is not None and self._age(entry) <= self.stale_ttl_s:
            return entry
        return None

    def put(self, key: str, value: Any) -> CacheEntry:
        entry = CacheEntry(value=value, fetched_at=utc_now(), stored_at=self._monotonic())
        self._entries[key] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_fetch(
        self, key: str, fetch: Callable[[], Awaitable[T]]
    ) -> CachedValue[T]:
        fresh = self.get_fresh(key)
        if fresh is not None:
            return CachedValue(fresh.value, "cache", fresh.fetched_at)
        async with self._lock_for(key):
            fresh = self.get_fresh(key)
            if fresh is not None:
                return CachedValue(fresh.value, "cache", fresh.fetched_at)
            try:
                value = await fetch()
            except UpstreamUnavailable as exc:
                stale = self.get_stale(key)
                if stale is None:
                    raise
                logger.warning("serving stale cache for %s after upstream failure: %s", key, exc)
                return CachedValue(stale.value, "stale-cache", stale.fetched_at, error=str(exc))
            entry = self.put(key, value)
            return CachedValue(value, "live", entry.fetched_at)
