"""Public tracking endpoints hit from inside newsletter emails.

None of these handlers may fail visibly: the pixel is always served and
links always redirect, whatever happened while recording the event.
"""
import base64
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse, Response

from badcompany.config import get_settings
from badcompany.database import SessionFactory, get_session_factory
from badcompany.metrics import TRACKING_EVENTS
from badcompany.services.tracking_service import TrackingService

logger = logging.getLogger(__name__)

router = APIRouter()

TRANSPARENT_GIF = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")
NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}
UNSUBSCRIBED_PATH = "/newsletter/unsubscribed"
# Largest value an INTEGER id column can hold
MAX_ID = 2**31 - 1


def _parse_id(value: Optional[str]) -> Optional[int]:
    try:
        parsed = int((value or "").strip())
    except ValueError:
        return None
    return parsed if 0 < parsed <= MAX_ID else None


def _site_redirect(path: str = "/") -> RedirectResponse:
    return RedirectResponse(url=get_settings().site_url.rstrip("/") + path)


def _pixel() -> Response:
    return Response(content=TRANSPARENT_GIF, media_type="image/gif", headers=NO_CACHE_HEADERS)


@router.get("/newsletter-track-open")
async def track_open(
    cid: Optional[str] = Query(None),
    sid: Optional[str] = Query(None),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    campaign_id, subscriber_id = _parse_id(cid), _parse_id(sid)
    if campaign_id is None or subscriber_id is None:
        TRACKING_EVENTS.labels(event="open_ignored").inc()
        return _pixel()

    try:
        first_open = await TrackingService(session_factory).record_open(campaign_id, subscriber_id)
        TRACKING_EVENTS.labels(event="open" if first_open else "open_repeat").inc()
    except Exception as e:
        TRACKING_EVENTS.labels(event="open_error").inc()
        logger.error(f"Open tracking failed for campaign {campaign_id}, subscriber {subscriber_id}: {type(e).__name__}: {e}")

    return _pixel()


@router.get("/newsletter-track-click")
async def track_click(
    cid: Optional[str] = Query(None),
    sid: Optional[str] = Query(None),
    url: Optional[str] = Query(None),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    if not url:
        TRACKING_EVENTS.labels(event="click_ignored").inc()
        return _site_redirect()

    campaign_id, subscriber_id = _parse_id(cid), _parse_id(sid)
    if campaign_id is None or subscriber_id is None:
        TRACKING_EVENTS.labels(event="click_ignored").inc()
        return RedirectResponse(url=url)

    try:
        await TrackingService(session_factory).record_click(campaign_id, subscriber_id, url)
        TRACKING_EVENTS.labels(event="click").inc()
    except Exception as e:
        TRACKING_EVENTS.labels(event="click_error").inc()
        logger.error(f"Click tracking failed for campaign {campaign_id}, subscriber {subscriber_id}: {type(e).__name__}: {e}")

    return RedirectResponse(url=url)


@router.get("/newsletter-unsubscribe")
async def unsubscribe(
    sid: Optional[str] = Query(None),
    cid: Optional[str] = Query(None),
    reason: Optional[str] = Query(None),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    subscriber_id = _parse_id(sid)
    if subscriber_id is None:
        return _site_redirect()

    try:
        await TrackingService(session_factory).unsubscribe(subscriber_id, _parse_id(cid), reason)
        TRACKING_EVENTS.labels(event="unsubscribe").inc()
    except Exception as e:
        TRACKING_EVENTS.labels(event="unsubscribe_error").inc()
        logger.error(f"Unsubscribe failed for subscriber {subscriber_id}: {type(e).__name__}: {e}")
        return _site_redirect()

    logger.info(f"Subscriber {subscriber_id} unsubscribed (campaign {cid or '-'})")
    return _site_redirect(UNSUBSCRIBED_PATH)
