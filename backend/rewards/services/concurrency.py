# Overview: Transaction helpers shared by every write path; locking, serializable begin, and bounded retry.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PersistenceConflict, PersistenceFailure
from ..extensions import db

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, StaleDataError, PersistenceConflict)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_serializable() covers it there.
    """
    return query.with_for_update()


def begin_serializable() -> None:
    """
    Start the write transaction up front.

    On SQLite this takes the RESERVED lock immediately, so two writers can
    never both read pre-mutation state. Other databases rely on
    lock_for_update() plus the version_id columns.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locks, deadlocks), StaleDataError
    (optimistic version conflicts) and PersistenceConflict (a conditional
    write that lost a race). Any other exception rolls back and propagates
    unchanged. Exhausted retries surface as PersistenceFailure.
    """
    if attempts is None:
        attempts = current_app.config.get("PURCHASE_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("PURCHASE_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.error("Giving up after %d attempts: %s", attempts, exc)
                raise PersistenceFailure(
                    "The operation could not be completed because of concurrent updates",
                    details={"attempts": attempts},
                ) from exc
            logger.warning("Transaction conflict on attempt %d, retrying: %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    raise PersistenceFailure("No attempts were made", details={"attempts": attempts})
