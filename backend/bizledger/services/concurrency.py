# Overview: Retry and locking helpers shared by every service that writes contended rows.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class PersistenceFailure(Exception):
    """
    Storage-layer fault surfaced to callers as an opaque internal error.

    retriable: the same request may succeed if sent again (lock contention).
    compensated: for transaction creation, whether reserved stock was put back.
    """

    def __init__(self, message: str, *, retriable: bool = True, compensated: bool | None = None):
        super().__init__(message)
        self.retriable = retriable
        self.compensated = compensated


def begin_write() -> None:
    """
    Take the database write lock up front on SQLite.

    Other dialects rely on the row locks taken by UPDATE itself.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Once attempts are exhausted the failure
    is raised as a retriable PersistenceFailure.
    """
    if attempts is None:
        attempts = current_app.config.get("RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("RETRY_BACKOFF_BASE", 0.05)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Giving up after %d attempts: %s", attempts, exc.__class__.__name__
                )
                raise PersistenceFailure("Storage is busy, please retry") from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
