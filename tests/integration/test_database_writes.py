"""
Integration test: Verify the recorder writes to Postgres correctly.

This test verifies:
1. Schema creation is idempotent
2. Change detection and FIFO trimming against real tables
3. Deleting a log cascades to its positions
4. Retention cleanup

Requires DATABASE_URL; skipped otherwise.
"""

import os
import uuid
from datetime import datetime, timedelta, timezone

import psycopg
import pytest

from simulation.errors import PersistenceError
from simulation.recorder import PositionRecorder, RecordOutcome
from simulation.store import PostgresPositionStore

DATABASE_URL = os.getenv("DATABASE_URL")

pytestmark = [
    pytest.mark.database,
    pytest.mark.skipif(not DATABASE_URL, reason="DATABASE_URL not set"),
]


@pytest.fixture(scope="module")
def pg_store():
    """Create store against the test database."""
    store = PostgresPositionStore(DATABASE_URL)
    try:
        store.init_schema()
    except PersistenceError as e:
        pytest.skip(f"Could not connect to database: {e}")
    yield store
    store.close()


@pytest.fixture
def flight_id(pg_store):
    fid = f"test-{uuid.uuid4().hex[:8]}"
    yield fid
    pg_store.delete(fid)


def test_tables_exist(pg_store):
    pg_store.init_schema()
    with psycopg.connect(DATABASE_URL) as conn, conn.cursor() as cur:
        for table in ("position_logs", "log_positions"):
            cur.execute("""
                SELECT EXISTS (
                    SELECT FROM information_schema.tables
                    WHERE table_schema = 'public'
                    AND table_name = %s
                )
            """, (table,))
            assert cur.fetchone()[0], f"{table} table should exist"


def test_record_and_skip_unchanged(pg_store, flight_id):
    recorder = PositionRecorder(pg_store, max_positions=10)

    assert recorder.record_if_changed(flight_id, 10.0, 20.0).outcome is RecordOutcome.SAVED
    assert recorder.record_if_changed(flight_id, 10.0, 20.0).outcome is RecordOutcome.UNCHANGED
    assert recorder.record_if_changed(flight_id, 10.5, 20.0).outcome is RecordOutcome.SAVED

    positions = pg_store.positions(flight_id)
    assert [(p.lat, p.lng) for p in positions] == [(10.0, 20.0), (10.5, 20.0)]
    assert positions[0].timestamp.tzinfo is not None


def test_fifo_trim(pg_store, flight_id):
    recorder = PositionRecorder(pg_store, max_positions=3)
    for i in range(6):
        result = recorder.record_if_changed(flight_id, float(i), 0.0)
    assert result.position_count == 3
    assert [p.lat for p in pg_store.positions(flight_id)] == [3.0, 4.0, 5.0]


def test_clear_and_delete(pg_store, flight_id):
    recorder = PositionRecorder(pg_store)
    recorder.record_if_changed(flight_id, 1.0, 1.0)

    recorder.start(flight_id)
    assert pg_store.positions(flight_id) == []
    assert flight_id in pg_store.flight_ids()

    assert pg_store.delete(flight_id)
    assert not pg_store.delete(flight_id)
    assert flight_id not in pg_store.flight_ids()


def test_delete_older_than(pg_store, flight_id):
    pg_store.find_or_create(flight_id)
    pg_store.delete_older_than(datetime.now(timezone.utc) - timedelta(days=1))
    assert flight_id in pg_store.flight_ids()


def test_unreachable_database_raises_persistence_error():
    store = PostgresPositionStore("postgresql://nobody@127.0.0.1:1/none", connect_timeout=1)
    with pytest.raises(PersistenceError):
        store.positions("x")
