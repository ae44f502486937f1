import logging
from typing import Optional

from badcompany.database import SessionFactory, get_session_factory
from badcompany.jobs.retry import scheduled_job
from badcompany.services.analytics_service import AnalyticsService
from badcompany.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)


@scheduled_job(RetryPolicy(max_attempts=3))
async def reconcile_counters_job(session_factory: Optional[SessionFactory] = None) -> int:
    """Bring campaign open/click counters back in line with the recipient rows and click log."""
    factory = session_factory or get_session_factory()
    # Single attempts here; the job wrapper owns the retries
    service = AnalyticsService(factory, policy=RetryPolicy(max_attempts=1))
    corrected = await service.reconcile_campaign_counters()
    if corrected:
        logger.info(f"Counter reconciliation corrected {corrected} campaigns")
    return corrected
