"""Result cache for read-only capability calls.

This module memoizes the payloads of idempotent capability executions and
merges concurrent identical executions into one.

Features:
- Content-addressed keys: ``fingerprint`` hashes the capability name together
  with a canonical, key-order-independent serialization of the arguments.
- Bounded capacity: when full, the entry with the lowest hit count is evicted
  (ties broken by the oldest creation time).
- TTL expiry: checked lazily on ``get``; ``purge_expired`` bounds memory when
  called periodically.
- Coalescing: ``get_or_execute`` keeps at most one in-flight execution per
  fingerprint; later callers await the first caller's result.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from ..policy.models import CachePolicy

logger = logging.getLogger(__name__)


class _Miss:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS: Any = _Miss()


def fingerprint(capability_name: str, arguments: Dict[str, Any]) -> str:
    """
    Compute the cache/coalescing key for a capability call.

    Args:
        capability_name: The capability being invoked.
        arguments: The call arguments. Key order, including nested mappings, does not matter.

    Returns:
        A hex SHA-256 digest.
    """
    canonical = json.dumps(
        {"capability": capability_name, "arguments": arguments},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    fingerprint: str
    value: Any
    created_at: float
    expires_at: float
    hit_count: int = 0

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class ResultCache:
    """Size- and time-bounded cache with in-flight request coalescing.

    Attributes:
        capacity: Maximum number of entries kept.
        default_ttl: TTL in seconds applied when ``put`` receives none.
    """

    def __init__(
        self,
        policy: Optional[CachePolicy] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        policy = policy or CachePolicy()
        self.capacity = policy.capacity
        self.default_ttl = policy.ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, asyncio.Future] = {}
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    async def get(self, fp: str) -> Any:
        """Return the cached value for ``fp`` or ``MISS``.

        An expired entry is removed and reported as a miss.
        """
        async with self._lock:
            return self._get_locked(fp)

    async def put(self, fp: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``fp``, evicting if the cache is full."""
        async with self._lock:
            self._put_locked(fp, value, ttl)

    async def get_or_execute(
        self,
        fp: str,
        supplier: Callable[[], Awaitable[Any]],
        *,
        ttl: Optional[float] = None,
        should_store: Optional[Callable[[Any], bool]] = None,
    ) -> Tuple[Any, bool]:
        """Run ``supplier`` unless an identical execution is already in flight.

        The first caller for a fingerprint becomes the leader and runs
        ``supplier``; callers arriving while it runs await the leader's result.
        When ``should_store`` accepts the result it is cached before the
        in-flight slot is released, so no caller can observe a window where the
        value is neither cached nor in flight.

        Args:
            fp: The request fingerprint.
            supplier: Zero-argument coroutine factory producing the value.
            ttl: TTL for the stored value.
            should_store: Predicate deciding whether the value is cached. When
                omitted the value is never cached.

        Returns:
            ``(value, coalesced)`` where ``coalesced`` is True for waiters.

        Raises:
            Exception: Whatever ``supplier`` raised, re-raised for the leader and every waiter.
        """
        async with self._lock:
            pending = self._in_flight.get(fp)
            if pending is None:
                pending = asyncio.get_running_loop().create_future()
                self._in_flight[fp] = pending
                leader = True
            else:
                leader = False

        if not leader:
            logger.debug(f"Coalescing request onto in-flight execution {fp[:12]}")
            value = await asyncio.shield(pending)
            return value, True

        try:
            value = await supplier()
        except BaseException as exc:
            async with self._lock:
                self._in_flight.pop(fp, None)
            if not pending.done():
                if isinstance(exc, asyncio.CancelledError):
                    pending.cancel()
                else:
                    pending.set_exception(exc)
                    # Mark retrieved so an exception with no waiters is not reported as unhandled.
                    pending.exception()
            raise

        async with self._lock:
            if should_store is not None and should_store(value):
                self._put_locked(fp, value, ttl)
            self._in_flight.pop(fp, None)
        if not pending.done():
            pending.set_result(value)
        return value, False

    async def purge_expired(self) -> int:
        """Remove every expired entry.

        Returns:
            The number of entries removed.
        """
        async with self._lock:
            return self._purge_locked(self._clock())

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    async def has(self, fp: str) -> bool:
        async with self._lock:
            entry = self._entries.get(fp)
            return entry is not None and not entry.expired(self._clock())

    def size(self) -> int:
        """Get the current number of entries (expired entries included until purged)."""
        return len(self._entries)

    def in_flight(self) -> int:
        return len(self._in_flight)

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "in_flight": len(self._in_flight),
        }

    def _get_locked(self, fp: str) -> Any:
        entry = self._entries.get(fp)
        if entry is None:
            self._misses += 1
            return MISS
        if entry.expired(self._clock()):
            del self._entries[fp]
            self._misses += 1
            return MISS
        entry.hit_count += 1
        self._hits += 1
        return entry.value

    def _put_locked(self, fp: str, value: Any, ttl: Optional[float]) -> None:
        now = self._clock()
        lifetime = self.default_ttl if ttl is None else ttl
        if fp not in self._entries and len(self._entries) >= self.capacity:
            self._purge_locked(now)
            while len(self._entries) >= self.capacity:
                self._evict_one_locked()
        self._entries[fp] = CacheEntry(fingerprint=fp, value=value, created_at=now, expires_at=now + lifetime)

    def _evict_one_locked(self) -> None:
        victim = min(self._entries.values(), key=lambda e: (e.hit_count, e.created_at))
        del self._entries[victim.fingerprint]
        self._evictions += 1
        logger.debug(f"Evicted cache entry {victim.fingerprint[:12]} hit_count={victim.hit_count}")

    def _purge_locked(self, now: float) -> int:
        expired = [fp for fp, entry in self._entries.items() if entry.expired(now)]
        for fp in expired:
            del self._entries[fp]
        return len(expired)
