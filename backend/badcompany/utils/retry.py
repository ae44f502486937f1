"""Retry utilities with exponential backoff and jitter.

Every persistence call in the newsletter pipeline goes through
:func:`with_retry` with a :class:`RetryPolicy`. The policy decides how many
attempts are made, how long to wait between them and which exceptions are
worth retrying at all.
"""
import asyncio
import random
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError, StatementError

from badcompany.config import get_settings
from badcompany.errors import NewsletterError
from badcompany.metrics import RETRY_ATTEMPTS

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How a fallible async operation is retried.

    Args:
        max_attempts: Total number of invocations, including the first one
        base_delay: Delay before the second attempt (in seconds), doubled per attempt
        max_delay: Upper bound for a single wait (in seconds), jitter included
        max_jitter: Upper bound of the random offset added to each wait
        retryable: Exception types that trigger another attempt
        fatal: Exception types re-raised immediately even if also retryable
        transient: Exception types retried even if also fatal
    """

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0
    max_jitter: float = 1.0
    retryable: tuple = (Exception,)
    fatal: tuple = field(default_factory=tuple)
    transient: tuple = field(default_factory=tuple)

    def delay_for(self, attempt: int) -> float:
        """Wait after the given (1-based) failed attempt."""
        backoff = self.base_delay * (2 ** (attempt - 1))
        jitter = random.uniform(0, self.max_jitter) if self.max_jitter > 0 else 0.0
        return min(backoff + jitter, self.max_delay)

    def should_retry(self, exc: BaseException) -> bool:
        if self.transient and isinstance(exc, self.transient):
            return True
        if self.fatal and isinstance(exc, self.fatal):
            return False
        return isinstance(exc, self.retryable)


DEFAULT_POLICY = RetryPolicy()


def database_retry_policy() -> RetryPolicy:
    """Policy for pipeline persistence calls, sized from settings.

    Statement errors (constraint violations, bad parameters, values out of
    range for a column) fail the same way on every attempt, so they are not
    retried. Connection-level failures stay retryable.
    """
    settings = get_settings()
    return RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
        max_jitter=settings.retry_max_jitter,
        fatal=(StatementError, OverflowError, NewsletterError),
        transient=(OperationalError, InterfaceError),
    )


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    name: Optional[str] = None,
) -> T:
    """Invoke ``operation`` until it succeeds or the policy gives up.

    The last error is re-raised unchanged once attempts are exhausted.

    Example:
        subscribers = await with_retry(lambda: load_subscribers(session_factory))
    """
    policy = policy or DEFAULT_POLICY
    op_name = name or getattr(operation, "__name__", "operation")

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if not policy.should_retry(e):
                logger.error(f"Non-retryable error in {op_name}: {type(e).__name__}: {e}")
                raise
            if attempt >= policy.max_attempts:
                logger.error(
                    f"Max retries exceeded for {op_name}: {type(e).__name__}: {e} "
                    f"(attempt {attempt}/{policy.max_attempts})"
                )
                raise
            delay = policy.delay_for(attempt)
            RETRY_ATTEMPTS.labels(operation=op_name).inc()
            logger.warning(
                f"Attempt {attempt}/{policy.max_attempts} of {op_name} failed: "
                f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"Retry policy for {op_name} allows no attempts")
