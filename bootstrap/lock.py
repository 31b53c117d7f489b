"""
bootstrap/lock.py -- The bootstrap lock document: a cross-process mutex in a table row.

One row at a fixed, well-known id. Whoever inserts it owns the one-time
seeding; everyone else finds it already there. The row is never deleted by
the application (only by an operator via `python main.py clear-lock`).

Insert-if-absent:
  SQLite and PostgreSQL: INSERT ... ON CONFLICT (id) DO NOTHING. rowcount is
      1 for the process that created the row and 0 for everyone else -- this
      is the "newly created" signal. The database serializes the inserts, so
      exactly one process in a race sees 1.
  Other dialects: a plain INSERT. IntegrityError (duplicate key) means the
      row already exists and is reported the same way as rowcount 0.

Timestamps are Unix seconds (int).

Layer rule: imports from core/ only.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from sqlalchemy import Column, Integer, String, Table, Text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from core.database import metadata

logger = logging.getLogger("storm.bootstrap")

LOCK_ID = "000000000000000000000001"

_lock = Table(
    "bootstrap_lock",
    metadata,
    Column("id", String(24), primary_key=True),
    Column("executed", Integer, nullable=False, server_default="0"),
    Column("timestamp", Integer, nullable=False),
    Column("instance", String(64), nullable=False),
    Column("completed", Integer, nullable=False, server_default="0"),
    Column("completed_timestamp", Integer),
    Column("failed", Integer, nullable=False, server_default="0"),
    Column("failed_timestamp", Integer),
    Column("error", Text),
)

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


@dataclass
class BootstrapLock:
    """Snapshot of the lock row."""

    id: str
    executed: bool
    timestamp: int
    instance: str
    completed: bool = False
    completed_timestamp: int | None = None
    failed: bool = False
    failed_timestamp: int | None = None
    error: str | None = None


class BootstrapLockStore:
    """Repository for the single bootstrap lock row."""

    def __init__(self, engine: Engine, lock_id: str = LOCK_ID) -> None:
        self.engine = engine
        self.lock_id = lock_id
        metadata.create_all(self.engine, tables=[_lock])

    def try_acquire(self, instance: str) -> bool:
        """Create the lock row if absent. Returns True only for the creator.

        A duplicate-key error from a truly simultaneous insert is the same
        answer as "already held" and is not raised.
        """
        values = {
            "id": self.lock_id,
            "executed": 1,
            "timestamp": int(time.time()),
            "instance": instance,
        }
        dialect_insert = _UPSERT_DIALECTS.get(self.engine.dialect.name)
        if dialect_insert is not None:
            stmt = dialect_insert(_lock).values(**values).on_conflict_do_nothing(index_elements=["id"])
        else:
            stmt = _lock.insert().values(**values)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        except IntegrityError:
            logger.info("Bootstrap lock insert lost a duplicate-key race (instance=%s)", instance)
            return False
        return result.rowcount == 1

    def mark_completed(self, conn: Connection) -> None:
        """Flag the seeding as complete. Must run on the seeding transaction's connection."""
        conn.execute(
            _lock.update()
            .where(_lock.c.id == self.lock_id)
            .values(completed=1, completed_timestamp=int(time.time()))
        )

    def mark_failed(self, error: str) -> None:
        """Record a seeding failure in its own transaction."""
        with self.engine.begin() as conn:
            conn.execute(
                _lock.update()
                .where(_lock.c.id == self.lock_id)
                .values(failed=1, failed_timestamp=int(time.time()), error=error)
            )

    def get(self) -> BootstrapLock | None:
        with self.engine.connect() as conn:
            row = conn.execute(_lock.select().where(_lock.c.id == self.lock_id)).fetchone()
        return _row_to_lock(row) if row is not None else None

    def clear(self) -> bool:
        """Delete the lock row so the next startup seeds again. Operator use only."""
        with self.engine.begin() as conn:
            result = conn.execute(_lock.delete().where(_lock.c.id == self.lock_id))
        return result.rowcount > 0


def _row_to_lock(row) -> BootstrapLock:
    return BootstrapLock(
        id=row.id,
        executed=bool(row.executed),
        timestamp=row.timestamp,
        instance=row.instance,
        completed=bool(row.completed),
        completed_timestamp=row.completed_timestamp,
        failed=bool(row.failed),
        failed_timestamp=row.failed_timestamp,
        error=row.error,
    )
