"""
Durable position log storage.

The recorder only talks to the narrow PositionStore interface. Two
implementations: an in-process store (default, tests) and PostgreSQL.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import psycopg

from simulation.config import EngineConfig
from simulation.errors import PersistenceError
from simulation.models import PositionEntry, PositionLog, utcnow

logger = logging.getLogger(__name__)


class PositionStore(ABC):
    """Persistence collaborator for recorded position logs."""

    @abstractmethod
    def find_or_create(self, flight_id: str) -> PositionLog:
        """Return the log header for flight_id, creating an empty log if missing."""

    @abstractmethod
    def last_position(self, flight_id: str) -> Optional[PositionEntry]:
        """Most recent stored entry, or None for an empty or missing log."""

    @abstractmethod
    def append(self, flight_id: str, entry: PositionEntry, cap: int) -> int:
        """Append entry, keep only the most recent `cap` entries. Returns the new length."""

    @abstractmethod
    def positions(self, flight_id: str) -> List[PositionEntry]:
        """All stored entries, oldest first."""

    @abstractmethod
    def clear(self, flight_id: str) -> None:
        """Empty the log for flight_id, creating it if missing."""

    @abstractmethod
    def delete(self, flight_id: str) -> bool:
        """Drop the log for flight_id. Returns False if there was none."""

    @abstractmethod
    def flight_ids(self) -> List[str]:
        """Ids of every flight with a stored log."""

    @abstractmethod
    def delete_older_than(self, cutoff: datetime) -> int:
        """Drop logs last updated before cutoff. Returns the number removed."""

    def close(self) -> None:
        pass


# ============================================================================
# In-memory store
# ============================================================================

@dataclass
class _MemoryLog:
    created_at: datetime
    updated_at: datetime
    positions: List[PositionEntry] = field(default_factory=list)


class InMemoryPositionStore(PositionStore):
    """Process-local store. Thread-safe; contents are lost on restart."""

    def __init__(self):
        self._logs: Dict[str, _MemoryLog] = {}
        self._lock = threading.RLock()

    def _get_or_create(self, flight_id: str) -> _MemoryLog:
        log = self._logs.get(flight_id)
        if log is None:
            now = utcnow()
            log = _MemoryLog(created_at=now, updated_at=now)
            self._logs[flight_id] = log
        return log

    def find_or_create(self, flight_id: str) -> PositionLog:
        with self._lock:
            log = self._get_or_create(flight_id)
            return PositionLog(flight_id, log.created_at, log.updated_at, len(log.positions))

    def last_position(self, flight_id: str) -> Optional[PositionEntry]:
        with self._lock:
            log = self._logs.get(flight_id)
            if log is None or not log.positions:
                return None
            return log.positions[-1]

    def append(self, flight_id: str, entry: PositionEntry, cap: int) -> int:
        with self._lock:
            log = self._get_or_create(flight_id)
            log.positions.append(entry)
            if len(log.positions) > cap:
                del log.positions[:-cap]
            log.updated_at = utcnow()
            return len(log.positions)

    def positions(self, flight_id: str) -> List[PositionEntry]:
        with self._lock:
            log = self._logs.get(flight_id)
            return list(log.positions) if log else []

    def clear(self, flight_id: str) -> None:
        with self._lock:
            log = self._get_or_create(flight_id)
            log.positions.clear()
            log.updated_at = utcnow()

    def delete(self, flight_id: str) -> bool:
        with self._lock:
            return self._logs.pop(flight_id, None) is not None

    def flight_ids(self) -> List[str]:
        with self._lock:
            return list(self._logs)

    def delete_older_than(self, cutoff: datetime) -> int:
        with self._lock:
            stale = [fid for fid, log in self._logs.items() if log.updated_at < cutoff]
            for fid in stale:
                del self._logs[fid]
            return len(stale)


# ============================================================================
# PostgreSQL store
# ============================================================================

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS position_logs (
        flight_id TEXT PRIMARY KEY,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS log_positions (
        id BIGSERIAL PRIMARY KEY,
        flight_id TEXT NOT NULL REFERENCES position_logs (flight_id) ON DELETE CASCADE,
        lat DOUBLE PRECISION NOT NULL,
        lng DOUBLE PRECISION NOT NULL,
        heading DOUBLE PRECISION NOT NULL DEFAULT 0,
        altitude DOUBLE PRECISION NOT NULL DEFAULT 0,
        speed DOUBLE PRECISION NOT NULL DEFAULT 0,
        recorded_at TIMESTAMPTZ NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_log_positions_flight
        ON log_positions (flight_id, id)
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_position_logs_updated
        ON position_logs (updated_at)
    """,
)

_UPSERT_LOG = """
    INSERT INTO position_logs (flight_id) VALUES (%s)
    ON CONFLICT (flight_id) DO UPDATE SET updated_at = NOW()
"""

_ENSURE_LOG = """
    INSERT INTO position_logs (flight_id) VALUES (%s)
    ON CONFLICT (flight_id) DO NOTHING
"""


def _row_to_entry(row) -> PositionEntry:
    lat, lng, heading, altitude, speed, recorded_at = row
    return PositionEntry(
        lat=lat,
        lng=lng,
        heading=heading,
        altitude=altitude,
        speed=speed,
        timestamp=recorded_at,
    )


class PostgresPositionStore(PositionStore):
    """
    PostgreSQL-backed store.

    One row per log in position_logs, one row per entry in log_positions.
    A single connection is shared; the lock keeps each operation's
    statements in one transaction.
    """

    def __init__(self, dsn: str, connect_timeout: int = 5):
        self.dsn = dsn
        self.connect_timeout = connect_timeout
        self._conn: Optional[psycopg.Connection] = None
        self._lock = threading.RLock()

    def _connection(self) -> psycopg.Connection:
        if self._conn is None or self._conn.closed:
            try:
                self._conn = psycopg.connect(self.dsn, connect_timeout=self.connect_timeout)
            except psycopg.Error as e:
                raise PersistenceError(f"Cannot connect to position store: {e}") from e
            logger.info("Position store connection established")
        return self._conn

    def _run(self, operation, *args):
        """Run operation(cursor, *args) in one transaction, mapping driver errors."""
        with self._lock:
            conn = self._connection()
            try:
                with conn.transaction():
                    with conn.cursor() as cur:
                        return operation(cur, *args)
            except psycopg.Error as e:
                logger.error(f"Position store error: {e}")
                if conn.broken:
                    self._conn = None
                raise PersistenceError(str(e)) from e

    def init_schema(self) -> None:
        def _create(cur):
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)
        self._run(_create)
        logger.info("Position store schema ready")

    def find_or_create(self, flight_id: str) -> PositionLog:
        def _find(cur, fid):
            cur.execute(_ENSURE_LOG, (fid,))
            cur.execute("""
                SELECT l.created_at, l.updated_at, COUNT(p.id)
                FROM position_logs l
                LEFT JOIN log_positions p ON p.flight_id = l.flight_id
                WHERE l.flight_id = %s
                GROUP BY l.created_at, l.updated_at
            """, (fid,))
            created_at, updated_at, count = cur.fetchone()
            return PositionLog(fid, created_at, updated_at, count)
        return self._run(_find, flight_id)

    def last_position(self, flight_id: str) -> Optional[PositionEntry]:
        def _last(cur, fid):
            cur.execute("""
                SELECT lat, lng, heading, altitude, speed, recorded_at
                FROM log_positions
                WHERE flight_id = %s
                ORDER BY id DESC
                LIMIT 1
            """, (fid,))
            row = cur.fetchone()
            return _row_to_entry(row) if row else None
        return self._run(_last, flight_id)

    def append(self, flight_id: str, entry: PositionEntry, cap: int) -> int:
        def _append(cur, fid):
            cur.execute(_UPSERT_LOG, (fid,))
            cur.execute("""
                INSERT INTO log_positions (
                    flight_id, lat, lng, heading, altitude, speed, recorded_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s)
            """, (
                fid,
                entry.lat,
                entry.lng,
                entry.heading,
                entry.altitude,
                entry.speed,
                entry.timestamp,
            ))
            # FIFO retention: keep the newest `cap` rows
            cur.execute("""
                DELETE FROM log_positions
                WHERE flight_id = %s AND id NOT IN (
                    SELECT id FROM log_positions
                    WHERE flight_id = %s
                    ORDER BY id DESC
                    LIMIT %s
                )
            """, (fid, fid, cap))
            cur.execute("SELECT COUNT(*) FROM log_positions WHERE flight_id = %s", (fid,))
            return cur.fetchone()[0]
        return self._run(_append, flight_id)

    def positions(self, flight_id: str) -> List[PositionEntry]:
        def _positions(cur, fid):
            cur.execute("""
                SELECT lat, lng, heading, altitude, speed, recorded_at
                FROM log_positions
                WHERE flight_id = %s
                ORDER BY id
            """, (fid,))
            return [_row_to_entry(row) for row in cur.fetchall()]
        return self._run(_positions, flight_id)

    def clear(self, flight_id: str) -> None:
        def _clear(cur, fid):
            cur.execute(_UPSERT_LOG, (fid,))
            cur.execute("DELETE FROM log_positions WHERE flight_id = %s", (fid,))
        self._run(_clear, flight_id)

    def delete(self, flight_id: str) -> bool:
        def _delete(cur, fid):
            cur.execute("DELETE FROM position_logs WHERE flight_id = %s", (fid,))
            return cur.rowcount > 0
        return self._run(_delete, flight_id)

    def flight_ids(self) -> List[str]:
        def _ids(cur):
            cur.execute("SELECT flight_id FROM position_logs ORDER BY created_at")
            return [row[0] for row in cur.fetchall()]
        return self._run(_ids)

    def delete_older_than(self, cutoff: datetime) -> int:
        def _cleanup(cur, ts):
            cur.execute("DELETE FROM position_logs WHERE updated_at < %s", (ts,))
            return cur.rowcount
        return self._run(_cleanup, cutoff)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None and not self._conn.closed:
                self._conn.close()
                logger.info("Position store connection closed")
            self._conn = None


def create_store(config: EngineConfig) -> PositionStore:
    """PostgreSQL when DATABASE_URL is set, otherwise in-memory."""
    if config.database_url:
        store = PostgresPositionStore(config.database_url)
        store.init_schema()
        return store
    logger.info("DATABASE_URL not set, recording to in-memory position store")
    return InMemoryPositionStore()
