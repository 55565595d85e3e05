"""In-process LRU of compatibility scores, owned by one CompatibilityEngine."""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

CacheKey = tuple[str, str]


@dataclass(frozen=True)
class ScoreEntry:
    score: int
    reasons: tuple[str, ...]
    computed_at: datetime


class CompatibilityCache:
    """Bounded LRU of score entries with a per-entry TTL.

    Only the score half of a record lives here. Visibility changes in other
    sessions and other processes, so it is always read from the store.
    Callers still validate ``computed_at`` against profile timestamps.
    """

    def __init__(self, max_entries: int, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_entries = max(0, int(max_entries))
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: "OrderedDict[CacheKey, tuple[ScoreEntry, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: CacheKey) -> Optional[ScoreEntry]:
        now = self._clock()
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return None
            value, expires_at = item
            if now >= expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    def set(self, key: CacheKey, value: ScoreEntry) -> None:
        if self.max_entries == 0 or self.ttl_seconds <= 0:
            return
        expires_at = self._clock() + self.ttl_seconds
        with self._lock:
            self._entries[key] = (value, expires_at)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
