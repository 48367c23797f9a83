"""Observable state container backing the ledger and other dashboard slots."""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence

from .kv import KeyValueStore

StateHandler = Callable[["StateChange"], None]


@dataclass(frozen=True, slots=True)
class StateChange:
    key: str
    value: Any | None


@dataclass(slots=True)
class StateSubscription:
    id: str
    keys: Sequence[str] | None
    handler: StateHandler
    active: bool = True

    def matches(self, key: str) -> bool:
        if not self.active:
            return False
        if self.keys is None:
            return True
        return key in self.keys


class StateStore:
    """Keyed snapshot with optional durable backing and change subscriptions."""

    def __init__(self, backend: KeyValueStore | None = None) -> None:
        self._backend = backend
        self._values: Dict[str, Any] = {}
        self._subs: Dict[str, StateSubscription] = {}
        self._lock = threading.RLock()

    def get(self, key: str, default: Any | None = None) -> Any | None:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any, *, persist: bool = True) -> None:
        with self._lock:
            self._values[key] = value
            if persist and self._backend is not None:
                self._backend.set(key, value)
        self._notify(StateChange(key=key, value=value))

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)
            if self._backend is not None:
                self._backend.delete(key)
        self._notify(StateChange(key=key, value=None))

    def restore(self, key: str) -> Any | None:
        """Read the durable copy of ``key`` without touching the snapshot."""

        if self._backend is None:
            return None
        return self._backend.get(key)

    def subscribe(
        self,
        handler: StateHandler,
        *,
        keys: Sequence[str] | None = None,
    ) -> StateSubscription:
        subscription = StateSubscription(id=str(uuid.uuid4()), keys=keys, handler=handler)
        with self._lock:
            self._subs[subscription.id] = subscription
        return subscription

    def unsubscribe(self, subscription_id: str) -> None:
        with self._lock:
            sub = self._subs.pop(subscription_id, None)
            if sub:
                sub.active = False

    def _notify(self, change: StateChange) -> None:
        with self._lock:
            subs: List[StateSubscription] = list(self._subs.values())
        for sub in subs:
            if sub.matches(change.key):
                sub.handler(change)


__all__ = ["StateChange", "StateHandler", "StateStore", "StateSubscription"]
