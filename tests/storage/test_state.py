from __future__ import annotations

from storage.kv import InMemoryKeyValueStore
from storage.state import StateStore


def test_set_notifies_matching_subscribers() -> None:
    state = StateStore()
    seen = []
    everything = []
    sub = state.subscribe(lambda change: seen.append(change), keys=["scenarioHistory"])
    state.subscribe(lambda change: everything.append(change.key))

    state.set("scenarioHistory", [1])
    state.set("unrelated", True)
    state.unsubscribe(sub.id)
    state.set("scenarioHistory", [1, 2])

    assert [change.value for change in seen] == [[1]]
    assert everything == ["scenarioHistory", "unrelated", "scenarioHistory"]


def test_persist_flag_controls_backend_writes() -> None:
    backend = InMemoryKeyValueStore()
    state = StateStore(backend)

    state.set("snapshot", {"a": 1}, persist=False)
    assert backend.get("snapshot") is None
    assert state.get("snapshot") == {"a": 1}

    state.set("snapshot", {"a": 2})
    assert state.restore("snapshot") == {"a": 2}

    state.delete("snapshot")
    assert state.get("snapshot", "missing") == "missing"
    assert state.restore("snapshot") is None
