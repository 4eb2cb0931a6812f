# Overview: Service-layer helper for concurrency; bounded retry around DB work.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import TransientFailure

logger = logging.getLogger(__name__)


def run_with_retry(func, *, session, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, busy/locked database) and
    StaleDataError (optimistic locking conflicts). The session is rolled back
    before every retry, so a retried func starts from a clean transaction.
    When attempts run out the failure is raised as TransientFailure, which
    callers may retry with the same idempotency key.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            if attempt >= attempts - 1:
                logger.warning("Giving up after %d attempts: %s", attempts, exc)
                raise TransientFailure("storage is busy, retry the request") from exc
            logger.info("Retrying after concurrency conflict (attempt %d): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
    raise TransientFailure("operation was not attempted")
