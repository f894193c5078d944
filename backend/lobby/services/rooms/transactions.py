import random
import time
from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from lobby import db

T = TypeVar('T')

# Raised by the store when another transaction committed a conflicting write:
# a bumped version column, or a row inserted under the same key.
CONFLICT_ERRORS = (StaleDataError, IntegrityError)


def run_in_transaction(body: Callable[[], T]) -> T:
    """Run ``body`` and commit, retrying the whole body on write conflicts.

    ``body`` must do all of its reads and writes through ``db.session`` so a
    retry starts from a fresh snapshot. Anything other than a conflict rolls
    back and propagates unchanged; a conflict that outlives
    ``TXN_MAX_ATTEMPTS`` propagates as the store raised it.
    """
    max_attempts = max(1, int(current_app.config.get('TXN_MAX_ATTEMPTS', 5)))
    backoff_sec = int(current_app.config.get('TXN_BACKOFF_MS', 25)) / 1000.0
    attempt = 1
    while True:
        try:
            result = body()
            db.session.commit()
            return result
        except CONFLICT_ERRORS as exc:
            db.session.rollback()
            if attempt >= max_attempts:
                current_app.logger.error(f"[txn-abort] attempts={attempt} error={exc.__class__.__name__}")
                raise
            delay = backoff_sec * (2 ** (attempt - 1)) * random.uniform(0.5, 1.5)
            current_app.logger.info(
                f"[txn-retry] attempt={attempt} error={exc.__class__.__name__} sleep={delay:.3f}s"
            )
            time.sleep(delay)
            attempt += 1
        except Exception:
            db.session.rollback()
            raise
