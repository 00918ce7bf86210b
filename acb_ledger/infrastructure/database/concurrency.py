"""Atomic unit-of-work runner with bounded lock waits and contention retry"""

import logging
import time
from typing import Callable, TypeVar
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from acb_ledger.config import settings
from acb_ledger.domain.exceptions import ContentionError, DomainException
from acb_ledger.infrastructure.observability.metrics import contention_retry_counter, record_operation

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_PGCODES = {"40001", "40P01", "55P03"}
UNIQUE_VIOLATION_PGCODE = "23505"


def is_contention(exc: Exception) -> bool:
    """True when a database error means another writer got there first"""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, IntegrityError):
        # Two requests racing to insert the same unique row (e.g. a first LP position).
        # Any other constraint failure is a bug and must surface.
        orig = exc.orig
        if getattr(orig, "pgcode", None) == UNIQUE_VIOLATION_PGCODE:
            return True
        return "unique constraint failed" in str(orig).lower()
    if isinstance(exc, OperationalError):
        orig = exc.orig
        if getattr(orig, "pgcode", None) in RETRYABLE_PGCODES:
            return True
        return "database is locked" in str(orig).lower()
    return False


def _set_lock_timeout(db: Session, lock_timeout_ms: int) -> None:
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text(f"SET LOCAL lock_timeout = '{int(lock_timeout_ms)}ms'"))


def run_atomic(
    db: Session,
    operation: str,
    work: Callable[[], T],
    max_retries: int | None = None,
    backoff_base: float | None = None,
    lock_timeout_ms: int | None = None,
) -> T:
    """
    Run `work` as one transaction and commit it.

    Either every write inside `work` commits or none does. Domain errors roll
    back and propagate unchanged. Write conflicts (stale versions, lock
    timeouts, serialization failures, racing inserts of one unique key) roll
    back and re-run `work` from a fresh read, with exponential backoff: base,
    2*base, 4*base... Other integrity errors are bugs and propagate.

    Raises:
        ContentionError: Conflicts persisted past max_retries
    """
    max_retries = settings.contention_max_retries if max_retries is None else max_retries
    backoff_base = settings.contention_backoff_base if backoff_base is None else backoff_base
    lock_timeout_ms = settings.lock_timeout_ms if lock_timeout_ms is None else lock_timeout_ms

    attempt = 0
    while True:
        try:
            _set_lock_timeout(db, lock_timeout_ms)
            result = work()
            db.commit()
            record_operation(operation)
            return result

        except DomainException as e:
            db.rollback()
            record_operation(operation, e.kind)
            raise

        except (StaleDataError, IntegrityError, OperationalError) as e:
            db.rollback()
            if not is_contention(e):
                raise

            attempt += 1
            contention_retry_counter.labels(operation=operation).inc()
            if attempt > max_retries:
                record_operation(operation, ContentionError.kind)
                raise ContentionError(
                    f"{operation} conflicted with concurrent writes {attempt} times; retry later",
                    operation=operation,
                ) from e

            backoff = backoff_base * (2 ** (attempt - 1))
            logger.warning(
                "Write conflict, retrying",
                extra={"step": operation, "attempt": attempt, "backoff_seconds": backoff},
            )
            time.sleep(backoff)

        except Exception:
            db.rollback()
            raise
