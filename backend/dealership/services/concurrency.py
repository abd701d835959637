# Overview: Transaction boundary and row-locking helpers shared by the workflows.

from __future__ import annotations

from typing import Callable

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError

# Driver messages that mean "another transaction holds the row/table",
# as opposed to a broken schema or a failing disk.
LOCK_CONTENTION_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "lock wait timeout",
    "could not obtain lock",
    "could not serialize access",
)


class ConcurrencyConflictError(ConflictError):
    """Raised when a concurrent writer changed the same entity first."""


def is_lock_contention(exc: OperationalError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in LOCK_CONTENTION_MARKERS)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id
    column on Tractor/SparePart still rejects stale writes at flush time.
    """
    return query.with_for_update()


def atomic(func, *, unique_errors: dict[str, Callable[[], ConflictError]] | None = None):
    """
    Run func as one unit of work: commit once on success, roll back
    everything it wrote on any failure.

    Concurrency failures (lock contention, optimistic version mismatches)
    surface as ConcurrencyConflictError. Other OperationalErrors propagate
    unchanged. Nothing is retried here; the rollback makes a caller-side
    retry safe.

    unique_errors maps a unique column name to a factory for the domain
    error raised when the database rejects a duplicate on that column
    (two requests racing past the service-level uniqueness check).
    """
    try:
        result = func()
        db.session.commit()
        return result
    except StaleDataError as exc:
        db.session.rollback()
        raise ConcurrencyConflictError(
            "the record was modified by another request; reload and try again"
        ) from exc
    except OperationalError as exc:
        db.session.rollback()
        if not is_lock_contention(exc):
            raise
        raise ConcurrencyConflictError(
            "the record is locked by another request; reload and try again"
        ) from exc
    except IntegrityError as exc:
        db.session.rollback()
        message = str(exc.orig if exc.orig is not None else exc).lower()
        for column, make_error in (unique_errors or {}).items():
            if column in message:
                raise make_error() from exc
        raise
    except Exception:
        db.session.rollback()
        raise
