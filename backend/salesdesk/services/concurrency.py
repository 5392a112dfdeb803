# Overview: Service-layer operations for concurrency; transaction boundary, row locks and retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PersistenceError, SalesDeskError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _default_attempts() -> int:
    return int(current_app.config.get("SALES_RETRY_ATTEMPTS", 3))


def run_in_transaction(session, func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Run func() as one unit of work on `session` and commit it.

    - Any SalesDeskError rolls back and propagates unchanged.
    - OperationalError (deadlocks, locks) and StaleDataError (optimistic
      locking conflicts) roll back and retry with exponential backoff; the
      last failure surfaces as PersistenceError.
    - Any other SQLAlchemy failure (including on commit) rolls back and
      surfaces as PersistenceError.

    func must not commit; it may flush.
    """
    if attempts is None:
        attempts = _default_attempts()

    for attempt in range(attempts):
        try:
            result = func()
            session.commit()
            return result
        except SalesDeskError:
            session.rollback()
            raise
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            if attempt >= attempts - 1:
                raise PersistenceError(
                    "Transaction aborted after repeated conflicts",
                    details={"attempts": attempts, "cause": exc.__class__.__name__},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            session.rollback()
            raise PersistenceError(
                "Transaction aborted by the database",
                details={"cause": exc.__class__.__name__},
            ) from exc
    raise PersistenceError("Transaction was not attempted", details={"attempts": attempts})
