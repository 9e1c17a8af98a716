# Overview: Unit of work, row locking and bounded retry for engine operations.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..exceptions import ConcurrencyConflict


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Rows that must serialize also carry a version_id column, so SQLite still
    detects lost updates as StaleDataError.
    """
    return query.with_for_update()


class UnitOfWork:
    """
    One atomic database transaction shared by every component of an operation.

    Components that read or write persistent state (pricing, inventory ledger,
    version recorder, numbering) take the unit of work as their first argument
    instead of reaching for the global session, so everything they touch
    commits together on a clean exit and is rolled back on any exception.
    """

    def __init__(self, session=None):
        self.session = session or db.session
        self._committed = False

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.session.commit()
            self._committed = True
        else:
            self.session.rollback()
        return False

    @property
    def committed(self) -> bool:
        return self._committed

    def query(self, *entities):
        return self.session.query(*entities)

    def locked(self, query):
        return lock_for_update(query)

    def add(self, instance) -> None:
        self.session.add(instance)

    def delete(self, instance) -> None:
        self.session.delete(instance)

    def flush(self) -> None:
        self.session.flush()


RETRYABLE_ERRORS = (OperationalError, StaleDataError)

# Driver messages (SQLite, PostgreSQL, MySQL) for lock and serialization failures
LOCK_ERROR_MARKERS = (
    "database is locked",
    "deadlock",
    "lock wait timeout",
    "could not obtain lock",
    "lock timeout",
    "could not serialize access",
)


def is_lock_conflict(exc: Exception) -> bool:
    """True for optimistic-version mismatches and driver lock/deadlock errors."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, OperationalError):
        message = str(exc.orig if exc.orig is not None else exc).lower()
        return any(marker in message for marker in LOCK_ERROR_MARKERS)
    return True


def run_with_retry(
    func,
    *,
    attempts: int | None = None,
    backoff_base: float | None = None,
    retry_on: tuple = RETRYABLE_ERRORS,
):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic locking conflicts). When every attempt fails the last error is
    surfaced as ConcurrencyConflict, which callers may treat as transient. An
    OperationalError that is not a lock conflict is re-raised unchanged.
    """
    if attempts is None:
        attempts = current_app.config.get("RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("RETRY_BACKOFF_BASE", 0.05)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            if not is_lock_conflict(exc):
                # Lost connection, missing table and the like are not transient
                raise
            if attempt >= attempts - 1:
                current_app.logger.error("Concurrency conflict after %d attempts: %s", attempts, exc)
                raise ConcurrencyConflict(
                    "The record was modified concurrently; retry the operation",
                    details={"attempts": attempts},
                ) from exc
            current_app.logger.warning(
                "Concurrency conflict on attempt %d/%d, retrying: %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))


def in_unit_of_work(op, **retry_kwargs):
    """Run op(uow) in a fresh UnitOfWork per attempt, retrying conflicts."""
    def _attempt():
        with UnitOfWork() as uow:
            return op(uow)
    return run_with_retry(_attempt, **retry_kwargs)
