"""
Unit tests for the in-memory position store.
"""

from datetime import datetime, timedelta, timezone

from simulation.config import EngineConfig
from simulation.models import PositionEntry
from simulation.store import InMemoryPositionStore, create_store


def _entry(lat, lng=0.0):
    return PositionEntry(lat=lat, lng=lng, heading=0.0, altitude=0.0, speed=0.0,
                         timestamp=datetime.now(timezone.utc))


def test_find_or_create_is_idempotent():
    store = InMemoryPositionStore()
    first = store.find_or_create("f1")
    second = store.find_or_create("f1")
    assert first.created_at == second.created_at
    assert second.position_count == 0
    assert store.flight_ids() == ["f1"]


def test_append_trims_oldest():
    store = InMemoryPositionStore()
    for i in range(5):
        count = store.append("f1", _entry(float(i)), cap=3)
    assert count == 3
    assert [p.lat for p in store.positions("f1")] == [2.0, 3.0, 4.0]
    assert store.last_position("f1").lat == 4.0


def test_last_position_missing_log():
    assert InMemoryPositionStore().last_position("nope") is None


def test_clear_keeps_log():
    store = InMemoryPositionStore()
    store.append("f1", _entry(1.0), cap=10)
    store.clear("f1")
    assert store.positions("f1") == []
    assert store.flight_ids() == ["f1"]


def test_delete_older_than():
    store = InMemoryPositionStore()
    store.append("f1", _entry(1.0), cap=10)
    assert store.delete_older_than(datetime.now(timezone.utc) - timedelta(days=1)) == 0
    assert store.delete_older_than(datetime.now(timezone.utc) + timedelta(seconds=1)) == 1
    assert store.flight_ids() == []


def test_positions_returns_copy():
    store = InMemoryPositionStore()
    store.append("f1", _entry(1.0), cap=10)
    store.positions("f1").clear()
    assert len(store.positions("f1")) == 1


def test_create_store_defaults_to_memory():
    assert isinstance(create_store(EngineConfig()), InMemoryPositionStore)
