# betterask/kv_store.py
import copy
import threading
from typing import Any, Optional

RECENT_PROMPTS_KEY = "recent-prompts"
ONBOARDING_SEEN_KEY = "onboarding-seen"
LAST_PRESET_KEY = "last-preset"

MAX_RECENT_PROMPTS = 10


class KeyValueStore:
    """
    Small UI-state store (recent prompts, onboarding flag, last preset).
    This base class is the "absent" store: reads are empty, writes are dropped.
    """

    def get(self, key: str, default: Any = None) -> Any:
        return default

    def set(self, key: str, value: Any) -> None:
        return None

    def remove(self, key: str) -> None:
        return None


class MemoryStore(KeyValueStore):

    def __init__(self, initial: Optional[dict] = None):
        self._lock = threading.Lock()
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._data:
                return default
            return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


def load_recent_prompts(store: Optional[KeyValueStore]) -> list:
    if store is None:
        return []
    value = store.get(RECENT_PROMPTS_KEY, [])
    return value if isinstance(value, list) else []


def push_recent_prompt(store: Optional[KeyValueStore], entry: dict) -> list:
    """Newest first, at most MAX_RECENT_PROMPTS entries."""
    recent = [entry, *load_recent_prompts(store)][:MAX_RECENT_PROMPTS]
    if store is not None:
        store.set(RECENT_PROMPTS_KEY, recent)
    return recent
