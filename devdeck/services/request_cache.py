"""Stale-while-revalidate cache with single-flight fetches.

A :class:`RequestCache` sits between the dashboard client and the HTTP API.
Reads go through :meth:`RequestCache.fetch_with_cache`:

* an entry younger than ``ttl`` is returned straight from memory;
* once it is older than ``ttl / 2`` a detached background fetch refreshes it
  while the caller still gets the cached value;
* a missing, expired or forced entry is fetched – and every concurrent caller
  for the same key awaits that **one** fetch instead of issuing its own.

The cache runs on a single asyncio event loop.  Registering an inflight fetch
happens without any ``await`` between the lookup and the insert, which is all
the mutual exclusion the inflight map needs.

Errors are never cached: a failed fetch propagates to every caller awaiting
it and leaves the previous entry (if any) untouched.  Nothing is retried here,
nothing is cancelled, and timeouts are left to the transport.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional
from typing import Set

from devdeck.constants import DEFAULT_TTL_SECONDS
from devdeck.utils.log import log

Fetcher = Callable[[str], Awaitable[Any]]
RevalidateCallback = Callable[[Any], Any]


@dataclass
class CacheEntry:
    data: Any
    timestamp: float


class RequestCache:
    """Per-process (or per-client) cache instance.

    Args:
        fetcher: ``async fetch(key) -> data``; must raise on failure.
        ttl: Seconds an entry is served without a blocking refetch.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        self._fetcher = fetcher
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        # Strong references so detached revalidations are not garbage
        # collected mid-flight.
        self._background: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_with_cache(
        self,
        key: str,
        *,
        force: bool = False,
        on_revalidate: Optional[RevalidateCallback] = None,
    ) -> Any:
        """Return data for *key*, from memory when fresh enough."""

        entry = self._entries.get(key)
        if not force and entry is not None:
            age = self._clock() - entry.timestamp
            if age < self.ttl:
                if age > self.ttl / 2:
                    self._revalidate(key, on_revalidate)
                return entry.data

        pending = self._inflight.get(key)
        if pending is None:
            pending = self._start_fetch(key)

        # ``shield`` keeps one caller's cancellation from cancelling the
        # fetch that other callers are awaiting.
        return await asyncio.shield(pending)

    def invalidate_cache(self, key: Optional[str] = None) -> None:
        """Drop the entry for *key*, or every entry when *key* is None.

        Inflight fetches keep running; their result is stored when they
        complete.
        """

        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def peek(self, key: str) -> Any:
        """Cached data for *key* regardless of age, without fetching."""

        entry = self._entries.get(key)
        return entry.data if entry is not None else None

    def is_inflight(self, key: str) -> bool:
        return key in self._inflight

    def keys(self) -> List[str]:
        return list(self._entries)

    async def drain(self) -> None:
        """Wait until every background revalidation has settled."""

        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start_fetch(self, key: str) -> asyncio.Task:
        task = asyncio.ensure_future(self._run_fetch(key))
        self._inflight[key] = task
        return task

    async def _run_fetch(self, key: str) -> Any:
        try:
            data = await self._fetcher(key)
            self._entries[key] = CacheEntry(data=data, timestamp=self._clock())
            return data
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    def _revalidate(self, key: str, on_revalidate: Optional[RevalidateCallback]) -> None:
        if key in self._inflight:
            return

        fetch = self._start_fetch(key)
        watcher = asyncio.ensure_future(self._await_revalidation(key, fetch, on_revalidate))
        self._background.add(watcher)
        watcher.add_done_callback(self._background.discard)

    async def _await_revalidation(
        self, key: str, fetch: asyncio.Task, on_revalidate: Optional[RevalidateCallback]
    ) -> None:
        try:
            data = await fetch
        except Exception as exc:
            log.warning("revalidate-failed", key=key, error=str(exc))
            return

        log.debug("revalidated", key=key)
        if on_revalidate is None:
            return

        try:
            result = on_revalidate(data)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            log.warning("revalidate-callback-failed", key=key, error=str(exc))


__all__ = ["CacheEntry", "RequestCache"]
