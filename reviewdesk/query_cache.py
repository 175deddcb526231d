"""
Key-based query cache.

Entries are keyed by tuples such as ``("myReviews", page, user_id)``.
A fresh entry (younger than its stale time) is served without calling
the fetcher; concurrent fetches of one key share a single in-flight
request. Invalidation marks every entry under a key prefix stale and
refetches it in the background.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

Key = Tuple[Any, ...]
Fetcher = Callable[[], Awaitable[Any]]


class CacheEntry:
    def __init__(self, data: Any, fetcher: Optional[Fetcher], stale_time: float, now: float):
        self.data = data
        self.fetcher = fetcher
        self.stale_time = stale_time
        self.updated_at = now
        self.last_used = now
        self.invalidated = False

    def is_stale(self, now: float) -> bool:
        return self.invalidated or now - self.updated_at >= self.stale_time


class QueryCache:
    def __init__(self, stale_time: float = 0, gc_time: float = 300, clock: Callable[[], float] = time.monotonic):
        self.stale_time = stale_time
        self.gc_time = gc_time
        self.clock = clock
        self.entries: Dict[Key, CacheEntry] = {}
        self._inflight: Dict[Key, asyncio.Future] = {}
        self._background: Set[asyncio.Task] = set()

    @staticmethod
    def matches(key: Key, prefix: Key) -> bool:
        return tuple(key[: len(prefix)]) == tuple(prefix)

    async def fetch(self, key: Key, fetcher: Fetcher, stale_time: Optional[float] = None) -> Any:
        key = tuple(key)
        now = self.clock()
        stale_time = self.stale_time if stale_time is None else stale_time
        self.collect_garbage()

        entry = self.entries.get(key)
        if entry is not None and not entry.is_stale(now):
            entry.last_used = now
            return entry.data

        if key in self._inflight:
            return await self._inflight[key]

        future = asyncio.ensure_future(fetcher())
        self._inflight[key] = future
        try:
            data = await future
        finally:
            self._inflight.pop(key, None)

        self.entries[key] = CacheEntry(data, fetcher, stale_time, self.clock())
        return data

    def get_query_data(self, key: Key) -> Any:
        entry = self.entries.get(tuple(key))
        return entry.data if entry is not None else None

    def set_query_data(self, key: Key, updater: Any) -> Any:
        """Replace cached data; ``updater`` may be a value or a function of the old value."""
        key = tuple(key)
        entry = self.entries.get(key)
        old = entry.data if entry is not None else None
        data = updater(old) if callable(updater) else updater
        if entry is None:
            self.entries[key] = CacheEntry(data, None, self.stale_time, self.clock())
        else:
            entry.data = data
            entry.last_used = self.clock()
        return data

    def invalidate(self, prefix: Key, refetch: bool = True) -> List[asyncio.Task]:
        tasks = []
        for key, entry in list(self.entries.items()):
            if not self.matches(key, prefix):
                continue
            entry.invalidated = True
            if refetch and entry.fetcher is not None:
                task = asyncio.ensure_future(self._refetch(key, entry.fetcher))
                self._background.add(task)
                task.add_done_callback(self._background.discard)
                tasks.append(task)
        logger.debug("Invalidated %s (%d refetches)", prefix, len(tasks))
        return tasks

    async def _refetch(self, key: Key, fetcher: Fetcher):
        try:
            await self.fetch(key, fetcher)
        except Exception:
            # the entry stays invalidated and is refetched on next read
            logger.exception("Background refetch of %s failed", key)

    def remove(self, prefix: Key):
        for key in [k for k in self.entries if self.matches(k, prefix)]:
            del self.entries[key]

    def collect_garbage(self):
        now = self.clock()
        expired = [k for k, e in self.entries.items() if now - e.last_used > self.gc_time]
        for key in expired:
            del self.entries[key]

    async def drain(self):
        """Wait for background refetches scheduled so far."""
        pending = list(self._background)
        if pending:
            await asyncio.gather(*pending)
