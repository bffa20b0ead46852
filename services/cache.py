"""
Cache invalidation port.

Mutating services receive a CacheInvalidator explicitly and call it only
after their transaction has committed.
"""
import threading
import time
from fnmatch import fnmatchcase

DEFAULT_TTL = 3600


class CacheInvalidator:
    def invalidate(self, key_pattern: str) -> None:
        raise NotImplementedError


class NullCache(CacheInvalidator):
    def invalidate(self, key_pattern: str) -> None:
        return None


class MemoryCache(CacheInvalidator):
    """
    Process-local key/value cache with glob-style invalidation.
    Every entry carries a TTL in seconds; expired entries read as misses and
    are purged on the next write.
    """

    def __init__(self, default_ttl: int = DEFAULT_TTL, clock=time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._data = {}
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._data[key]
                return None
            return value

    def set(self, key, value, ttl: int = None):
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            now = self._clock()
            for stale in [k for k, (expires_at, _) in self._data.items() if expires_at <= now]:
                del self._data[stale]
            self._data[key] = (now + ttl, value)

    def keys(self):
        with self._lock:
            now = self._clock()
            return [k for k, (expires_at, _) in self._data.items() if expires_at > now]

    def invalidate(self, key_pattern: str) -> None:
        with self._lock:
            for key in [k for k in self._data if fnmatchcase(k, key_pattern)]:
                del self._data[key]
