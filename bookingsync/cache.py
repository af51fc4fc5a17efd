"""
Process-local TTL cache for availability lookups.

Backed by ``cachetools.TTLCache``: entries expire after ``ttl`` seconds on the
injected clock, expired entries are purged on every write and the cache never
holds more than ``maxsize`` keys (least recently used go first).

Read-through callers do ``get`` -> provider call -> ``set``. Two requests that
miss the same key concurrently will both hit Acuity; that is accepted, so no
locking is done here.
"""
import logging
import time
from typing import Any, Callable, Optional

from cachetools import TTLCache as _ExpiringCache

logger = logging.getLogger(__name__)

_MISSING = object()


class TTLCache:
    """Bounded key/value cache with a time to live"""

    def __init__(
        self,
        ttl: float = 300,
        maxsize: int = 2048,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.ttl = ttl
        self.maxsize = maxsize
        self._entries = _ExpiringCache(maxsize=maxsize, ttl=ttl, timer=clock or time.monotonic)

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache; expired and unknown keys are a miss"""
        value = self._entries.get(key, _MISSING)
        if value is _MISSING:
            logger.debug(f"❌ Cache MISS: {key}")
            return None

        logger.debug(f"✅ Cache HIT: {key}")
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value
        logger.debug(f"✅ Cache SET: {key} (TTL: {self.ttl}s)")

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, _MISSING) is not _MISSING

    def delete_prefix(self, prefix: str) -> int:
        """Delete all keys starting with prefix (e.g. 'month:123:')"""
        self._entries.expire()
        keys = [k for k in list(self._entries.keys()) if k.startswith(prefix)]
        for k in keys:
            self._entries.pop(k, None)
        if keys:
            logger.debug(f"✅ Cache DELETE prefix: {prefix} ({len(keys)} keys)")
        return len(keys)

    def cleanup(self) -> int:
        """Remove expired entries"""
        expired = self._entries.expire()
        if expired:
            logger.debug(f"🧹 Cleaned up {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)
