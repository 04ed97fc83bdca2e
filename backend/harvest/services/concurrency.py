# Overview: Transaction boundaries and lock helpers shared by the billing services.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    populate_existing() makes the locked read overwrite stale identity-map state.
    """
    return query.with_for_update().populate_existing()


def run_in_transaction(func):
    """
    Run func as one unit of work: commit if it returns, roll back if it raises.

    Every write func performs (flushes included) is discarded on failure, so
    no Credit row survives without its Invoice, no Payment without its status
    update, and so on.
    """
    try:
        result = func()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return result


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts on version_id columns). Any other error
    rolls back and propagates immediately.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return run_in_transaction(func)
        except (OperationalError, StaleDataError) as exc:
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
