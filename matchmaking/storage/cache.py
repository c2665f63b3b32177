"""TTL-based in-memory cache."""

import time
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """
    Key-value cache whose entries expire after ttl_seconds.

    Concurrent readers share it without locking; the only race is a
    duplicate fetch and write-through of the same value.

    Attributes:
        ttl_seconds: Entry lifetime
        clock: Time source in seconds (monotonic by default)
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self.clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (value, self.clock())

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
