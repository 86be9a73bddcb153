# mccdash/cache.py
from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional

from flask import current_app

DEFAULT_TTL_SECONDS = 3600


class TTLCache:
    """
    Process-local key/value map with a fixed time-to-live.

    Entries disappear on restart. Expired entries are evicted lazily on read.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._data: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            stored_at, value = item
            if self._clock() - stored_at > self.ttl_seconds:
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = (self._clock(), value)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


def init_caches(app) -> None:
    ttl = app.config.get("ACCOUNT_CACHE_TTL_SECONDS", DEFAULT_TTL_SECONDS)
    app.extensions["ttl_caches"] = {
        "accounts": TTLCache(ttl),
        "hierarchy": TTLCache(ttl),
    }


def get_cache(name: str) -> TTLCache:
    return current_app.extensions["ttl_caches"][name]


def accounts_key(email: str) -> str:
    return f"accounts-{email}"


def hierarchy_key(mcc_id: str, email: str) -> str:
    return f"hierarchy-{mcc_id}-{email}"
