# Overview: Locking and retry helpers shared by the stock ledger and order services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class StockConflictError(Exception):
    """Raised when a stock write keeps losing to concurrent writers."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on engines that support it.

    SQLite ignores the clause; there the version_id compare-and-swap on
    products is what serializes writers.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run a unit of DB work, retrying when it loses a concurrency race.

    StaleDataError means a versioned row (a product) changed between our read
    and our UPDATE; OperationalError covers lock timeouts and deadlocks. The
    session is rolled back before every retry so func() re-reads fresh state
    and re-runs its own validation. Business exceptions propagate untouched.
    """
    if attempts is None:
        attempts = current_app.config.get("STOCK_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("STOCK_RETRY_BACKOFF", 0.05)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if isinstance(exc, StaleDataError):
                    raise StockConflictError(
                        "Stock changed concurrently; please retry",
                        details={"attempts": attempts},
                    ) from exc
                raise
            current_app.logger.warning(
                "Concurrent write conflict (%s), retry %d/%d",
                type(exc).__name__, attempt + 1, attempts - 1,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
