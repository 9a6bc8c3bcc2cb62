# Overview: Locking, guarded updates and retry helpers shared by the ledger services.

from __future__ import annotations

import logging
import time

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def guarded_decrement(model, column, row_id: int, amount: int, **scope) -> bool:
    """
    Atomically run `column = column - amount WHERE id = row_id AND column >= amount`.

    Extra keyword arguments are added as equality filters (e.g. user_id=...).
    Returns True when exactly one row was updated. The check and the write
    happen in one statement, so two concurrent callers cannot both pass a
    check that only one of them can satisfy.
    """
    attr = getattr(model, column)
    stmt = (
        update(model)
        .where(model.id == row_id, attr >= amount)
        .values({column: attr - amount})
        .execution_options(synchronize_session=False)
    )
    for key, value in scope.items():
        stmt = stmt.where(getattr(model, key) == value)
    result = db.session.execute(stmt)
    return result.rowcount == 1


def guarded_increment(model, column, row_id: int, amount: int, **scope) -> bool:
    attr = getattr(model, column)
    stmt = (
        update(model)
        .where(model.id == row_id)
        .values({column: attr + amount})
        .execution_options(synchronize_session=False)
    )
    for key, value in scope.items():
        stmt = stmt.where(getattr(model, key) == value)
    result = db.session.execute(stmt)
    return result.rowcount == 1


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must re-read whatever it mutates,
    since the session is rolled back between attempts.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.warning("Retrying after concurrency conflict (attempt %s): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
