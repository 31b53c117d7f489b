"""
bootstrap/seeder.py -- Run a one-time seeding action exactly once across all processes.

Protocol:
  1. In-process guard: each IdempotentSeeder attempts at most once in its
     lifetime, however many times run() is called. The guard is an instance
     field, so one seeder per process (built in the app lifespan) gives the
     once-per-process property.
  2. Cross-process guard: BootstrapLockStore.try_acquire() -- only the
     process that creates the lock row goes on.
  3. The winner runs seed(conn) and marks the lock completed in ONE
     transaction. Readers never see seed rows without completed=1, or the
     other way round.
  4. On failure the transaction rolls back, the winner records failed=1 and
     the error text in a separate best-effort write, and raises
     TransactionError.

Known limitation: a failed seeding is never retried automatically. The lock
row still exists, so every later process skips. Clear it with
`python main.py clear-lock` after fixing the cause.

Layer rule: imports from core/ and bootstrap/ only.
"""

from __future__ import annotations

import logging
import secrets
import threading
from collections.abc import Callable
from enum import Enum

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from bootstrap.lock import BootstrapLockStore
from core.errors import TransactionError

logger = logging.getLogger("storm.bootstrap")


class SeedOutcome(str, Enum):
    SEEDED = "seeded"
    # Another process (or an earlier run) created the lock row.
    ALREADY_CLAIMED = "already_claimed"
    # This seeder already attempted once in this process.
    ALREADY_ATTEMPTED = "already_attempted"


def _new_instance_tag() -> str:
    return f"instance-{secrets.token_hex(6)}"


class IdempotentSeeder:
    """Guarded, exactly-once execution of seed(conn).

    Usage:
        seeder = IdempotentSeeder(engine, BootstrapLockStore(engine), seed_sample_submissions)
        seeder.run()    # SeedOutcome; raises TransactionError if seeding failed
    """

    def __init__(
        self,
        engine: Engine,
        lock_store: BootstrapLockStore,
        seed: Callable[[Connection], None],
        instance: str | None = None,
    ) -> None:
        self._engine = engine
        self._lock_store = lock_store
        self._seed = seed
        self.instance = instance or _new_instance_tag()
        self._attempted = False
        self._guard = threading.Lock()

    @property
    def attempted(self) -> bool:
        return self._attempted

    def run(self) -> SeedOutcome:
        with self._guard:
            if self._attempted:
                logger.info("Seeding already attempted in this process, skipping")
                return SeedOutcome.ALREADY_ATTEMPTED
            self._attempted = True

        if not self._lock_store.try_acquire(self.instance):
            logger.info("Bootstrap lock already exists, skipping seeding")
            return SeedOutcome.ALREADY_CLAIMED

        logger.info("Bootstrap lock acquired by %s, seeding", self.instance)
        try:
            with self._engine.begin() as conn:
                self._seed(conn)
                self._lock_store.mark_completed(conn)
        except Exception as exc:
            logger.error("Seeding transaction failed: %s", exc)
            try:
                self._lock_store.mark_failed(str(exc))
            except SQLAlchemyError:
                logger.exception("Failed to record seeding failure on the bootstrap lock")
            raise TransactionError("Seeding transaction failed") from exc

        logger.info("Seeding completed")
        return SeedOutcome.SEEDED
