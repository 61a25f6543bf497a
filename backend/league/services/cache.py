"""
In-process versioned cache.

Every key carries a version counter bumped on invalidate(); readers that
stored a value under an older version see a miss. Entries also expire
after their TTL. Eviction beyond TTL is not handled here.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


@dataclass
class _Entry:
    value: Any
    version: int
    expires_at: Optional[float]


class VersionedCache:
    def __init__(self, default_ttl: Optional[float] = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._versions: Dict[str, int] = {}
        self._lock = threading.Lock()

    def version(self, key: str) -> int:
        with self._lock:
            return self._versions.get(key, 0)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.version != self._versions.get(key, 0) or (
                entry.expires_at is not None and entry.expires_at <= self._clock()
            ):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            expires_at = self._clock() + ttl if ttl else None
            self._entries[key] = _Entry(value, self._versions.get(key, 0), expires_at)

    def invalidate(self, key: str) -> int:
        """Drop the cached value and bump the key's version. Returns the new version."""
        with self._lock:
            self._entries.pop(key, None)
            version = self._versions.get(key, 0) + 1
            self._versions[key] = version
            return version

    def get_or_load(self, key: str, loader: Callable[[], Any], ttl: Optional[float] = None) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = loader()
        self.set(key, value, ttl)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._versions.clear()


# Process-wide instance used by routes and finalization hooks
default_cache = VersionedCache()
