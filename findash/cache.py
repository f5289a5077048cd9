from __future__ import annotations

import os
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

FINDASH_CACHE_TTL_SECONDS = float(os.environ.get("FINDASH_CACHE_TTL_SECONDS", "86400"))
FINDASH_QUOTE_TTL_SECONDS = float(os.environ.get("FINDASH_QUOTE_TTL_SECONDS", "300"))


class TTLCache:
    """In-memory key/value store whose entries expire after a per-entry TTL.

    The clock is injectable so expiry can be tested without sleeping.
    """

    def __init__(self, default_ttl: float = FINDASH_CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._store: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def _live_entry(self, key: str) -> Optional[Tuple[float, Any]]:
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._clock() > entry[0]:
            self._store.pop(key, None)
            return None
        return entry

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._live_entry(key)
        return None if entry is None else entry[1]

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        expiry = self._clock() + (self.default_ttl if ttl is None else ttl)
        with self._lock:
            self._store[key] = (expiry, value)

    def has(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def stats(self) -> dict:
        with self._lock:
            return {"entries": len(self._store), "keys": list(self._store)}
