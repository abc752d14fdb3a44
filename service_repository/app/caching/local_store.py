"""
In-process response cache backend.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from shared.logging import get_logger
from .backend import CacheBackend, CacheStatus
from .policy import CachePolicy


class LocalStore(CacheBackend):
    """Bounded LRU map with sliding per-entry expiry.

    Entries are kept in access order, oldest first, so both the
    least-recently-used victim and any idle-expired entries sit at the
    front of the map. ``size`` is a running sum of stored value lengths in
    bytes: it grows on every write, never shrinks on eviction, and is reset
    to zero by ``invalidate_all``.
    """

    name = "local"

    def __init__(self, policy: Optional[CachePolicy] = None, clock: Callable[[], float] = time.monotonic):
        super().__init__(policy)
        self.logger = get_logger("repository.cache.local")
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()
        self._size = 0

    @property
    def max_entries(self) -> Optional[int]:
        return self.policy.max_entries

    @property
    def ttl(self) -> Optional[int]:
        return self.policy.retention_seconds

    def _expired(self, accessed_at: float, now: float) -> bool:
        return self.ttl is not None and now - accessed_at >= self.ttl

    def _purge_expired(self, now: float) -> None:
        # Caller holds the lock.
        while self._entries:
            key, (_, accessed_at) = next(iter(self._entries.items()))
            if not self._expired(accessed_at, now):
                break
            del self._entries[key]

    def get_sync(self, key: str) -> Optional[str]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, accessed_at = entry
            if self._expired(accessed_at, now):
                del self._entries[key]
                return None
            self._entries[key] = (value, now)
            self._entries.move_to_end(key)
            return value

    def put_sync(self, key: str, value: str) -> None:
        now = self._clock()
        with self._lock:
            self._purge_expired(now)
            self._entries[key] = (value, now)
            self._entries.move_to_end(key)
            self._size += len(value.encode("utf-8"))
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    self.logger.debug("Evicted cache entry", key=evicted)

    def invalidate_all_sync(self) -> None:
        with self._lock:
            self._entries.clear()
            self._size = 0

    def status_sync(self) -> CacheStatus:
        with self._lock:
            self._purge_expired(self._clock())
            return CacheStatus(entries=len(self._entries), size=self._size)

    async def get(self, key: str) -> Optional[str]:
        return self.get_sync(key)

    async def put(self, key: str, value: str) -> None:
        self.put_sync(key, value)

    async def invalidate_all(self) -> None:
        self.invalidate_all_sync()
        self.logger.info("Local cache flushed")

    async def status(self) -> CacheStatus:
        return self.status_sync()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not self._expired(entry[1], self._clock())
