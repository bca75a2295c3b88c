"""
TTL cache for upstream read calls (Meta Graph API, etc.).

One CacheService is built at app startup and handed to every consumer; there is
no module-level cache. Keys are "<resource>:<param>:<param>..." strings so callers
can drop a whole resource class with invalidate("<resource>:").

Concurrent misses for the same key are not de-duplicated: each caller runs its
own fetch and the last write wins.
"""
import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)


class CacheTTL:
    """Default TTLs in seconds per resource class."""
    INSIGHTS = 2 * 60
    CREATIVE_DETAILS = 5 * 60
    AD_DETAILS = 5 * 60
    ADSET_DETAILS = 5 * 60
    CAMPAIGNS = 10 * 60
    ADSETS = 10 * 60
    AD_ACCOUNTS = 30 * 60
    PAGES = 60 * 60


DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60


@dataclass
class CacheEntry:
    key: str
    data: Any
    expires_at: float


def make_cache_key(resource: str, *params: Any) -> str:
    """make_cache_key("adInsights", "123", "2024-01-01") -> "adInsights:123:2024-01-01"."""
    return ":".join([resource, *("" if p is None else str(p) for p in params)])


class CacheService:
    """In-process TTL cache with prefix invalidation and a periodic expiry sweep."""

    def __init__(
        self,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: Dict[str, CacheEntry] = {}
        self._clock = clock
        self.sweep_interval_seconds = sweep_interval_seconds
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for key, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None or entry.expires_at <= self._clock():
            return None
        return entry

    def set(self, key: str, data: Any, ttl_seconds: float) -> CacheEntry:
        entry = CacheEntry(key=key, data=data, expires_at=self._clock() + ttl_seconds)
        self._entries[key] = entry
        return entry

    async def get_or_fetch(
        self,
        key: str,
        ttl_seconds: float,
        fetch_fn: Callable[[], Union[Any, Awaitable[Any]]],
    ) -> Any:
        """
        Return the cached value for key if live; otherwise call fetch_fn, store its
        result with a fresh expiry and return it. fetch_fn may be sync or async.
        Errors from fetch_fn propagate and nothing is stored.
        """
        entry = self.get(key)
        if entry is not None:
            return entry.data

        data = fetch_fn()
        if inspect.isawaitable(data):
            data = await data
        self.set(key, data, ttl_seconds)
        return data

    def invalidate(self, prefix: str) -> int:
        """Remove every entry whose key starts with prefix. Returns the number removed."""
        keys = [k for k in self._entries if k.startswith(prefix)]
        for k in keys:
            del self._entries[k]
        if keys:
            logger.debug("Invalidated %d cache entries with prefix %r", len(keys), prefix)
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    def sweep_expired(self) -> int:
        """Drop expired entries regardless of access. Returns the number removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for k in expired:
            del self._entries[k]
        return len(expired)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            removed = self.sweep_expired()
            if removed:
                logger.info("Cache sweep removed %d expired entries (%d live)", removed, len(self._entries))

    def start_sweeper(self) -> asyncio.Task:
        """Start the background sweep on the running loop. Idempotent."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
