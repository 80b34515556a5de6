# Overview: Unit-of-work helpers; every mutation commits all collections together.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

"""
Application State Invariants (authoritative)

- Representatives, products and movements live in one database; a user action
  that touches several collections (e.g. a delivery appends movements AND
  decrements central stock) is committed exactly once, together.
- Services only add + flush; the outer atomic() block owns the commit.
- Any exception inside atomic() rolls the whole action back: no partial state.
"""


def lock_for_update(query):
    """
    Apply row-level locking for ledger appends.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a whole unit of work, retrying on lock contention (OperationalError)
    and optimistic version conflicts (StaleDataError).

    func must be safe to re-run from scratch: it is called again after rollback.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))


@contextmanager
def atomic():
    """
    Commit everything done inside the block as one transaction.

        with atomic():
            deliver_maleta(...)
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def commit_atomically(func, *, attempts: int = 3):
    """Run func inside atomic(), retrying the whole block on concurrency errors."""
    def _op():
        with atomic():
            return func()
    return run_with_retry(_op, attempts=attempts)
