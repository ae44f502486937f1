import functools
import logging
import time
from typing import Optional

from badcompany.metrics import JOB_DURATION, JOB_FAILURE, JOB_SUCCESS
from badcompany.utils.retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)


def scheduled_job(policy: Optional[RetryPolicy] = None):
    """Decorator for scheduler jobs: retries, records job metrics, never raises.

    The scheduler has nobody to report to, so a job that still fails after
    its retries is logged and counted as a failure.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.monotonic()
            try:
                result = await with_retry(lambda: func(*args, **kwargs), policy=policy, name=func.__name__)
            except Exception as e:
                JOB_DURATION.labels(job_name=func.__name__).observe(time.monotonic() - start_time)
                JOB_FAILURE.labels(job_name=func.__name__).inc()
                logger.error(f"Job {func.__name__} failed: {type(e).__name__}: {e}")
                return None
            JOB_DURATION.labels(job_name=func.__name__).observe(time.monotonic() - start_time)
            JOB_SUCCESS.labels(job_name=func.__name__).inc()
            return result
        return wrapper
    return decorator
