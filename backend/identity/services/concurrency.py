# Overview: Optimistic-concurrency helpers; bounded retry around per-account units of work.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 3


class ConcurrentModificationError(Exception):
    """Raised when a version check keeps failing after every retry attempt."""
    pass


def run_with_retry(func, *, attempts: int = DEFAULT_ATTEMPTS, backoff_base: float = 0.05):
    """
    Execute a unit of work with retry on concurrency-related failures.

    func must re-read whatever it mutates: each attempt starts after a
    rollback, so objects loaded by a previous attempt are expired.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic version conflicts). An exhausted StaleDataError surfaces as
    ConcurrentModificationError; an exhausted OperationalError is re-raised
    unmodified.
    """
    for attempt in range(attempts):
        try:
            return func()
        except StaleDataError as exc:
            db.session.rollback()
            logger.warning("version conflict (attempt %s/%s): %s", attempt + 1, attempts, exc)
            if attempt >= attempts - 1:
                raise ConcurrentModificationError(
                    f"Record was modified concurrently; gave up after {attempts} attempts"
                ) from exc
        except OperationalError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning("operational error, retrying (attempt %s/%s)", attempt + 1, attempts)
        except Exception:
            # Leave no half-applied changes in the shared session
            db.session.rollback()
            raise
        time.sleep(backoff_base * (2 ** attempt))
