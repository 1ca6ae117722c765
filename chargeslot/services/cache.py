"""
Short-lived cache of fetched reservations, owned by the calling service.

The availability engine stays cache-free; only the network fetch is cached.
Entries are keyed by ``(resource_id, date)`` and must be invalidated whenever
a reservation is created for that resource and date.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date as date_type
from typing import Any, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

import pendulum
from pendulum import DateTime

logger = logging.getLogger(__name__)

T = TypeVar("T")

CacheKey = Tuple[Hashable, date_type]


@dataclass
class _Entry(Generic[T]):
    value: T
    expires_at: DateTime


class AvailabilityCache(Generic[T]):
    """TTL cache keyed by ``(resource_id, date)`` with explicit invalidation."""

    def __init__(
        self,
        ttl_seconds: int = 120,
        clock: Callable[[], DateTime] = pendulum.now,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[CacheKey, _Entry[T]] = {}
        self._lock = threading.Lock()

    def get(self, resource_id: Hashable, day: date_type) -> Optional[T]:
        """Return the cached value, or None when missing or expired."""
        key = (resource_id, day)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                logger.debug("Cache entry expired for %s on %s", resource_id, day)
                return None
            return entry.value

    def set(self, resource_id: Hashable, day: date_type, value: T) -> None:
        if self.ttl_seconds <= 0:
            return
        now = self._clock()
        with self._lock:
            self._purge_expired(now)
            self._entries[(resource_id, day)] = _Entry(value=value, expires_at=now.add(seconds=self.ttl_seconds))

    def invalidate(self, resource_id: Hashable, day: date_type) -> bool:
        """Drop the entry for a resource and date; returns True if one existed."""
        with self._lock:
            removed = self._entries.pop((resource_id, day), None) is not None
        if removed:
            logger.debug("Invalidated cache for %s on %s", resource_id, day)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _purge_expired(self, now: DateTime) -> None:
        """Drop every expired entry; the caller holds the lock."""
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for entry in self._entries.values() if now < entry.expires_at)

    def __contains__(self, key: Any) -> bool:
        return self.get(*key) is not None
