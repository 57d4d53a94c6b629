"""Transaction boundary for ledger-bearing operations."""
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.domain.common.errors import ServerError
from marketplace.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Postgres: serialization_failure, deadlock_detected
_CONTENTION_SQLSTATES = {"40001", "40P01"}


def is_contention_error(exc: BaseException) -> bool:
    """True for errors caused by concurrent access (worth one retry), not by bad data."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _CONTENTION_SQLSTATES:
        return True
    if isinstance(exc, OperationalError):
        text = str(orig or exc).lower()
        return "database is locked" in text or "deadlock" in text or "could not serialize" in text
    return False


async def run_atomic(
    session: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    label: str = "transaction",
) -> T:
    """Run ``operation`` and commit, as one all-or-nothing unit.

    Domain errors (insufficient funds, invalid transition, ...) roll back and
    propagate untouched. Contention errors roll back and are retried
    ``settings.ledger_retry_attempts`` times, then surface as ServerError.
    Any other database error rolls back and surfaces as ServerError at once.
    """
    attempts = 1 + max(0, settings.ledger_retry_attempts)
    for attempt in range(1, attempts + 1):
        try:
            result = await operation()
            await session.commit()
            return result
        except DBAPIError as e:
            await session.rollback()
            if not is_contention_error(e):
                logger.error("%s failed with a database error: %s", label, e)
                raise ServerError() from e
            if attempt >= attempts:
                logger.error("%s failed after %s attempts due to contention: %s", label, attempt, e)
                raise ServerError("The operation could not be completed, please retry") from e
            logger.warning("%s hit contention (attempt %s/%s), retrying: %s", label, attempt, attempts, e)
        except BaseException:
            await session.rollback()
            raise
    raise ServerError()
