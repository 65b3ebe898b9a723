# Overview: Service-layer helpers for concurrency; retry, locking and rollback on failure.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StockflowError, StoreUnavailable
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Product.version_id still detects a concurrent write on SQLite.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts on Product.version_id).

    Any failure rolls the session back before propagating, so a unit of
    work either commits entirely or leaves nothing behind:
    - StockflowError (domain rule violated) is re-raised unchanged
    - database errors surface as StoreUnavailable
    """
    for attempt in range(attempts):
        try:
            return func()
        except StockflowError:
            db.session.rollback()
            raise
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.error("Giving up after %d attempts: %s", attempts, exc)
                raise StoreUnavailable("Data store busy, please retry") from exc
            current_app.logger.warning("Concurrent update detected, retrying (attempt %d)", attempt + 1)
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Data store error")
            raise StoreUnavailable() from exc
