from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from badcompany.database import SessionFactory, run_in_transaction
from badcompany.utils.retry import RetryPolicy, database_retry_policy, with_retry

T = TypeVar("T")


class RetryingService:
    """Base class for services whose database calls go through the retry policy."""

    def __init__(self, session_factory: SessionFactory, policy: Optional[RetryPolicy] = None):
        self.session_factory = session_factory
        self.policy = policy or database_retry_policy()

    async def _persist(self, name: str, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run ``operation`` as one retried transaction."""
        return await with_retry(
            lambda: run_in_transaction(self.session_factory, operation),
            policy=self.policy,
            name=name,
        )
