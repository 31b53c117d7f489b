"""
core/database.py -- Engine factory and the shared SQLAlchemy metadata.

One engine per process, built here and injected into every store
(UserStore, BootstrapLockStore, ContactStore). Sharing the engine matters:
the bootstrap seeder writes contact rows and the lock's completion flag in
one transaction, which is only possible on one connection.

Every store registers its tables on the shared `metadata` and calls
metadata.create_all(engine, tables=[...]) for its own tables at construction.

Layer rule: core/ is the kernel. No imports from api/, auth/, bootstrap/, or contact/.
"""

from datetime import datetime, timezone

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine

metadata = MetaData()

# Seconds a SQLite connection waits on a locked database before raising.
_SQLITE_BUSY_TIMEOUT = 30


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. In-memory databases silently keep their
    journal mode, so the PRAGMA is harmless there.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_db_engine(db_url: str) -> Engine:
    """Build the process-wide engine for db_url.

    SQLite connections are shared across the TestClient / uvicorn worker
    threads (check_same_thread=False) and wait on a locked file instead of
    failing immediately (timeout). Shared-memory URIs (file:...?uri=true) are
    passed through unchanged.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = _SQLITE_BUSY_TIMEOUT
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def now_iso() -> str:
    """Current UTC time as a fixed-width ISO 8601 string.

    timespec="microseconds" keeps every value the same width, so string
    comparison in SQL (expires_at > :now) is chronological comparison.
    """
    return to_iso(datetime.now(timezone.utc))


def to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")
