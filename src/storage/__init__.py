"""Storage backends: durable key-value, observable state, and session-scoped slots."""

from .ephemeral import EphemeralStore
from .kv import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore
from .state import StateChange, StateStore, StateSubscription

__all__ = [
    "EphemeralStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "StateChange",
    "StateStore",
    "StateSubscription",
]
