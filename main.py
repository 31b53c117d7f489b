#!/usr/bin/env python3
"""
Storm backend operator CLI -- inspect and drive the one-time bootstrap seeding.

Usage:
  python main.py status        # print the bootstrap lock document
  python main.py bootstrap     # seed now (no-op if the lock already exists)
  python main.py clear-lock    # delete the lock so the next run seeds again

The database comes from DATABASE_URL (see core/config.py).

clear-lock is the only recovery path after a failed seeding: the lock row
stays behind with failed=1 and every later process skips seeding until it is
removed.
"""

import argparse
import sys
from datetime import datetime, timezone
from typing import Optional

from bootstrap.lock import BootstrapLock, BootstrapLockStore
from bootstrap.seeder import IdempotentSeeder
from contact.seed import seed_sample_submissions
from contact.store import ContactStore
from core.config import get_settings
from core.database import create_db_engine
from core.errors import TransactionError


def _fmt_ts(ts: Optional[int]) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _print_lock(lock: Optional[BootstrapLock]) -> None:
    if lock is None:
        print("  No bootstrap lock -- the next startup with USE_MOCK=true will seed.")
        return
    print(f"  id         : {lock.id}")
    print(f"  instance   : {lock.instance}")
    print(f"  claimed at : {_fmt_ts(lock.timestamp)}")
    print(f"  completed  : {lock.completed} ({_fmt_ts(lock.completed_timestamp)})")
    print(f"  failed     : {lock.failed} ({_fmt_ts(lock.failed_timestamp)})")
    if lock.error:
        print(f"  error      : {lock.error}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="main.py",
        description="Inspect and drive the Storm bootstrap seeding lock.",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Print the bootstrap lock document")
    sub.add_parser("bootstrap", help="Run the one-time seeding now")
    sub.add_parser("clear-lock", help="Delete the bootstrap lock so seeding can run again")
    args = parser.parse_args(argv)

    engine = create_db_engine(get_settings().database_url)
    try:
        lock_store = BootstrapLockStore(engine)

        if args.command == "status":
            _print_lock(lock_store.get())
            return 0

        if args.command == "clear-lock":
            if lock_store.clear():
                print("  Bootstrap lock cleared.")
            else:
                print("  No bootstrap lock to clear.")
            return 0

        ContactStore(engine)  # seed target table must exist
        seeder = IdempotentSeeder(engine, lock_store, seed_sample_submissions)
        try:
            outcome = seeder.run()
        except TransactionError as exc:
            print(f"  [!] Seeding failed: {exc.__cause__ or exc}")
            _print_lock(lock_store.get())
            return 1
        print(f"  Bootstrap: {outcome.value}")
        return 0
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
