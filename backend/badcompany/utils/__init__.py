"""Utility functions and decorators."""
from badcompany.utils.retry import RetryPolicy, database_retry_policy, with_retry

__all__ = [
    "RetryPolicy",
    "database_retry_policy",
    "with_retry",
]
