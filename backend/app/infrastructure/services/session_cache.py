"""
Session Cache

Short-lived get-or-fetch cache for "current user" lookups.

Several dependencies resolve the same bearer token within one request
(and a page load fires several requests at once). Entries live for a few
seconds, so a stale read is bounded by the TTL. Concurrent misses for the
same key share one in-flight fetch. Expired entries are swept on every
write, so the map never outgrows the tokens seen within one TTL.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Entry(Generic[T]):
    value: T
    expires_at: float


class TTLCache(Generic[T]):
    """
    Keyed cache with timestamp-based expiry.

    Failed fetches are never cached: the exception propagates to every
    caller waiting on that fetch and the next call retries.
    """

    def __init__(
        self,
        ttl_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, _Entry[T]] = {}
        self._inflight: Dict[Hashable, "asyncio.Future[T]"] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: Hashable) -> Optional[T]:
        """Return a cached value if still fresh, without fetching."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    async def get_or_fetch(self, key: Hashable, fetcher: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value for key, calling fetcher on a miss.

        Args:
            key: Cache key (e.g. the bearer token)
            fetcher: Zero-argument coroutine function producing the value
        """
        entry = self._entries.get(key)
        if entry is not None and self._clock() < entry.expires_at:
            return entry.value

        pending = self._inflight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        future: "asyncio.Future[T]" = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            value = await fetcher()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unobserved failure does not warn at GC
            future.exception()
            raise
        else:
            if self._ttl > 0:
                now = self._clock()
                self._prune(now)
                self._entries[key] = _Entry(value=value, expires_at=now + self._ttl)
            future.set_result(value)
            return value
        finally:
            self._inflight.pop(key, None)

    def _prune(self, now: float) -> None:
        """Drop every expired entry."""
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop all entries (e.g. on sign-out)."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
