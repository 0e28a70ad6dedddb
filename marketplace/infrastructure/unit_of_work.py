"""Transactional unit of work with bounded retries.

Each command runs inside one database transaction. Lock timeouts,
serialization failures, deadlocks and SQLite busy errors are retried
with exponential backoff. When the attempts run out the failure surfaces
as ConcurrencyConflictError.
"""

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from marketplace.domain.exceptions import ConcurrencyConflictError
from marketplace.infrastructure.config import settings

logger = structlog.get_logger()

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
_TRANSIENT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
_TRANSIENT_MESSAGES = ("database is locked", "database table is locked", "deadlock")


def is_transient_error(exc: BaseException) -> bool:
    """Check whether a database error is worth retrying.

    Args:
        exc: Exception raised while running or committing a transaction.

    Returns:
        True for lock timeouts, serialization failures and busy errors.
    """
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _TRANSIENT_SQLSTATES:
        return True
    message = str(orig).lower()
    return any(fragment in message for fragment in _TRANSIENT_MESSAGES)


class UnitOfWork:
    """Runs a coroutine in a single retried transaction.

    Example:
        uow = UnitOfWork(session_factory)
        order_id = await uow.run("checkout", lambda session: do_checkout(session))
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        attempts: int | None = None,
        lock_timeout_ms: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.attempts = attempts or settings.transaction_retry_attempts
        self.lock_timeout_ms = lock_timeout_ms or settings.lock_timeout_ms

    async def run(self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run work in a transaction, retrying transient failures.

        Domain errors raised by work roll the transaction back and
        propagate unchanged.

        Args:
            operation: Name used in logs and conflict errors.
            work: Coroutine function receiving the transactional session.

        Returns:
            Whatever work returns.

        Raises:
            ConcurrencyConflictError: If every attempt hit a transient error.
        """
        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
            retry=retry_if_exception(is_transient_error),
            before_sleep=self._log_retry(operation),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    result = await self._run_once(work)
        except DBAPIError as exc:
            if is_transient_error(exc):
                logger.warning(
                    "Transaction retries exhausted",
                    operation=operation,
                    attempts=self.attempts,
                    error=str(exc.orig),
                )
                raise ConcurrencyConflictError(operation, self.attempts) from exc
            raise
        return result

    async def _run_once(self, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self._session_factory() as session:
            async with session.begin():
                await self._bound_lock_waits(session)
                return await work(session)

    async def _bound_lock_waits(self, session: AsyncSession) -> None:
        # SQLite waits are bounded by the driver busy timeout instead
        if session.get_bind().dialect.name == "postgresql":
            await session.execute(text(f"SET LOCAL lock_timeout = '{int(self.lock_timeout_ms)}ms'"))

    @staticmethod
    def _log_retry(operation: str) -> Callable[[RetryCallState], None]:
        def before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.info(
                "Retrying transaction",
                operation=operation,
                attempt=retry_state.attempt_number,
                error=str(exc),
            )

        return before_sleep
