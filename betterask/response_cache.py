# betterask/response_cache.py
import re
import threading
import time
from typing import Any, Callable, Optional

from betterask.google_helpers import TAG_CACHE_TTL_SECONDS


def make_cache_key(topic: str, intent: str, persona: str, stage: int) -> str:
    norm_topic = re.sub(r"\s+", " ", (topic or "").strip().lower())
    return "::".join([norm_topic, (intent or "").strip().lower(), (persona or "").strip().lower(), str(stage)])


class ResponseCache:
    """
    In-memory key -> (payload, created_at) map with a fixed TTL.
    - TTL counts from creation, reads do not extend it
    - expired entries are evicted lazily on get(), and in bulk on every put()
    - no size bound; entries are small and TTL-bounded
    Lost on restart, which only costs a cold cache.
    """

    def __init__(self, ttl_seconds: int = TAG_CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # key -> {"payload": Any, "created_at": float}
        self._items: dict[str, dict[str, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        now = self._clock()
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            if now - float(item["created_at"]) >= self.ttl_seconds:
                del self._items[key]
                return None
            return item["payload"]

    def _sweep_expired_unlocked(self, now: float) -> int:
        expired = [k for k, v in self._items.items() if now - float(v["created_at"]) >= self.ttl_seconds]
        for k in expired:
            del self._items[k]
        return len(expired)

    def put(self, key: str, payload: Any) -> None:
        now = self._clock()
        with self._lock:
            self._sweep_expired_unlocked(now)
            self._items[key] = {"payload": payload, "created_at": now}

    def sweep_expired(self) -> int:
        """
        Delete expired entries. Returns how many were removed.
        """
        now = self._clock()
        with self._lock:
            return self._sweep_expired_unlocked(now)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


GLOBAL_TAG_CACHE = ResponseCache()
