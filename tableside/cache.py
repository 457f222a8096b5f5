"""Read-through cache for server entities with explicit invalidate/refetch."""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from tableside.config import CACHE_STALE_SECONDS

logger = logging.getLogger(__name__)

Key = tuple[str, ...]
Fetcher = Callable[[], Awaitable[Any]]


class EntryState(str, enum.Enum):
    EMPTY = "empty"
    LOADING = "loading"
    FRESH = "fresh"
    STALE = "stale"
    ERROR = "error"


@dataclass
class CacheEntry:
    state: EntryState = EntryState.EMPTY
    value: Any = None
    error: BaseException | None = None
    fetched_at: float | None = None
    fetcher: Fetcher | None = None
    pending: asyncio.Future[Any] | None = None
    generation: int = 0


@dataclass(frozen=True)
class Snapshot:
    """What a reader sees. ``value`` is only set while the entry is fresh."""

    state: EntryState
    value: Any = None
    error: BaseException | None = None


def order_key(order_id: str) -> Key:
    return ("orders", "detail", order_id)


def bill_key(bill_id: str) -> Key:
    return ("bills", "detail", bill_id)


def bills_by_order_key(order_id: str) -> Key:
    return ("bills", "byOrder", order_id)


class QueryCache:
    """Per-key loading/stale/fresh state machine.

    ``invalidate`` drops the cached value immediately so readers get a
    loading state until ``refetch`` completes; nobody sees data that a
    confirmed mutation has made obsolete.
    """

    def __init__(self, stale_seconds: float = CACHE_STALE_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        self.stale_seconds = stale_seconds
        self._clock = clock
        self._entries: dict[Key, CacheEntry] = {}

    def _entry(self, key: Key) -> CacheEntry:
        return self._entries.setdefault(key, CacheEntry())

    def _is_expired(self, entry: CacheEntry) -> bool:
        if entry.fetched_at is None:
            return True
        return self._clock() - entry.fetched_at >= self.stale_seconds

    def snapshot(self, key: Key) -> Snapshot:
        entry = self._entries.get(key)
        if entry is None:
            return Snapshot(EntryState.EMPTY)
        if entry.state is EntryState.FRESH and self._is_expired(entry):
            entry.state = EntryState.STALE
        if entry.state is EntryState.FRESH:
            return Snapshot(EntryState.FRESH, entry.value)
        if entry.state is EntryState.STALE:
            # Age-expired entries keep serving their value until refetched.
            return Snapshot(EntryState.STALE, entry.value)
        return Snapshot(entry.state, error=entry.error)

    async def get(self, key: Key, fetcher: Fetcher) -> Any:
        entry = self._entry(key)
        entry.fetcher = fetcher
        if entry.state is EntryState.FRESH and not self._is_expired(entry):
            return entry.value
        return await self.refetch(key)

    def invalidate(self, prefix: Key) -> list[Key]:
        """Mark every entry whose key starts with ``prefix`` as needing a refetch."""
        invalidated = []
        for key, entry in self._entries.items():
            if key[: len(prefix)] != prefix:
                continue
            entry.value = None
            entry.fetched_at = None
            # A read started before this point must not be joined or stored.
            entry.generation += 1
            entry.pending = None
            entry.state = EntryState.STALE
            invalidated.append(key)
        logger.debug("invalidated %s", invalidated)
        return invalidated

    async def refetch(self, key: Key) -> Any:
        """Fetch ``key`` again, joining a fetch already in flight for the same generation.

        If the entry is invalidated while the fetch runs, its result is handed
        to the callers that were waiting on it but is not stored.
        """
        entry = self._entry(key)
        if entry.fetcher is None:
            raise KeyError(f"no fetcher registered for {key!r}")
        if entry.pending is not None:
            return await entry.pending

        generation = entry.generation
        pending = asyncio.get_running_loop().create_future()
        entry.pending = pending
        entry.state = EntryState.LOADING
        entry.value = None
        try:
            value = await entry.fetcher()
        except Exception as exc:
            pending.set_exception(exc)
            # Mark retrieved so a lone caller does not trigger "never retrieved" warnings.
            pending.exception()
            if entry.generation == generation:
                entry.state = EntryState.ERROR
                entry.error = exc
                entry.pending = None
            raise
        pending.set_result(value)
        if entry.generation != generation:
            logger.debug("dropped superseded fetch for %s", key)
            return value
        entry.state = EntryState.FRESH
        entry.value = value
        entry.error = None
        entry.fetched_at = self._clock()
        entry.pending = None
        return value

    async def invalidate_and_refetch(self, key: Key) -> Any:
        self.invalidate(key)
        return await self.refetch(key)

    def clear(self) -> None:
        self._entries.clear()
