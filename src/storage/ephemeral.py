"""Session-scoped keyed store with TTL expiry and explicit clearing."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, MutableMapping, TypeVar

T = TypeVar("T")
Lookup = tuple[bool, T | None]
Clock = Callable[[], float]


@dataclass(slots=True)
class SlotEntry(Generic[T]):
    value: T
    stored_at: float
    expires_at: float

    def expired(self, now: float) -> bool:
        return self.expires_at <= now


class EphemeralStore(Generic[T]):
    """In-memory stand-in for browser session storage.

    Entries vanish after their TTL, when invalidated, or when the session is
    cleared. When ``max_items`` is reached the oldest write is dropped.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_items: int = 64,
        *,
        clock: Clock | None = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_items <= 0:
            raise ValueError("max_items must be positive")
        self._ttl_seconds = ttl_seconds
        self._max_items = max_items
        self._clock: Clock = clock or time.time
        self._slots: Dict[str, SlotEntry[T]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Lookup[T]:
        now = self._clock()
        with self._lock:
            entry = self._slots.get(key)
            if entry is None:
                return False, None
            if entry.expired(now):
                del self._slots[key]
                return False, None
            return True, entry.value

    def set(self, key: str, value: T, *, ttl_seconds: float | None = None) -> T:
        now = self._clock()
        ttl = self._ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._slots.pop(key, None)
            self._drop_expired(now)
            while len(self._slots) >= self._max_items:
                oldest = min(self._slots, key=lambda name: self._slots[name].stored_at)
                del self._slots[oldest]
            self._slots[key] = SlotEntry(value=value, stored_at=now, expires_at=now + ttl)
        return value

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._slots.pop(key, None) is not None

    def clear(self) -> int:
        """End the session: every slot is dropped. Returns how many were live."""

        with self._lock:
            dropped = len(self._slots)
            self._slots.clear()
        return dropped

    def keys(self) -> List[str]:
        now = self._clock()
        with self._lock:
            self._drop_expired(now)
            return list(self._slots)

    def _drop_expired(self, now: float) -> None:
        for name in [name for name, entry in self._slots.items() if entry.expired(now)]:
            del self._slots[name]

    def stats(self) -> MutableMapping[str, Any]:
        return {
            "ttl_seconds": self._ttl_seconds,
            "max_items": self._max_items,
            "size": len(self.keys()),
        }


__all__ = ["EphemeralStore", "SlotEntry"]
