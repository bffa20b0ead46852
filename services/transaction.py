"""
Unit-of-work boundary for every mutating service operation.

`atomic()` commits all writes made inside the block or none of them, turns
storage failures into typed domain errors, and delivers queued cache
invalidations only once the commit has succeeded.

Lock and serialization conflicts fail fast as a retryable ConflictError; the
caller decides whether to run the operation again. Any other storage failure
is an InternalError.
"""
from __future__ import annotations

import logging
import re
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from models import storage
from services.cache import NullCache
from services.errors import ConflictError, DomainError, InternalError

logger = logging.getLogger(__name__)

# sqlite: "UNIQUE constraint failed: purchases.order_number"
# postgres: 'Key (order_number)=(ORD-...) already exists.'
_SQLITE_FIELD = re.compile(r"constraint failed: \w+\.(\w+)")
_PG_FIELD = re.compile(r"Key \((?:lower\()?(\w+)\)?\)=")

# serialization_failure, deadlock_detected, lock_not_available
_PG_CONFLICT_CODES = {"40001", "40P01", "55P03"}
_SQLITE_CONFLICT_MESSAGES = ("database is locked", "database table is locked", "database schema has changed")


def _violated_field(exc: IntegrityError):
    text = str(getattr(exc, "orig", exc))
    for pattern in (_SQLITE_FIELD, _PG_FIELD):
        match = pattern.search(text)
        if match:
            return match.group(1)
    if "uq_sweets_active_name" in text:
        return "name"
    return None


def is_lock_conflict(exc) -> bool:
    """True for storage errors caused by a competing transaction."""
    if isinstance(exc, StaleDataError):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in _PG_CONFLICT_CODES:
        return True
    message = str(orig).lower()
    return any(m in message for m in _SQLITE_CONFLICT_MESSAGES)


class UnitOfWork:
    def __init__(self, session):
        self.session = session
        self._patterns = []

    def add(self, obj):
        self.session.add(obj)
        return obj

    def flush(self):
        self.session.flush()

    def invalidate(self, *patterns):
        """Queue cache patterns; they are sent after commit."""
        self._patterns.extend(patterns)

    def _deliver(self, cache):
        for pattern in self._patterns:
            try:
                cache.invalidate(pattern)
            except Exception:
                # Committed already; cached entries still lapse at their TTL
                logger.warning("cache invalidation failed for %s", pattern, exc_info=True)
        self._patterns.clear()


@contextmanager
def atomic(cache=None):
    session = storage.get_session()
    uow = UnitOfWork(session)
    try:
        yield uow
        session.commit()
    except DomainError:
        session.rollback()
        raise
    except IntegrityError as exc:
        session.rollback()
        field = _violated_field(exc)
        logger.warning("integrity violation on %s", field or "unknown field")
        raise ConflictError("Conflicting record already exists", field=field) from exc
    except SQLAlchemyError as exc:
        session.rollback()
        if is_lock_conflict(exc):
            logger.warning("storage conflict: %s", exc.__class__.__name__)
            raise ConflictError("Resource is busy, please retry", retryable=True) from exc
        logger.exception("unexpected storage failure")
        raise InternalError() from exc
    except Exception:
        session.rollback()
        raise
    uow._deliver(cache or NullCache())


def lock_for_update(query):
    """
    Take row locks on whatever `query` selects, held until the unit of work
    ends. PostgreSQL emits SELECT ... FOR UPDATE; SQLite renders no clause and
    relies on its database-level write lock instead.
    """
    return query.with_for_update()
