import logging

from badcompany.logging_config import SuppressTrackingAccessFilter, redact_emails


def _access_record(path: str) -> logging.LogRecord:
    return logging.LogRecord(
        name="uvicorn.access",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg='%s - "%s %s HTTP/%s" %d',
        args=("127.0.0.1:5000", "GET", path, "1.1", 200),
        exc_info=None,
    )


def test_tracking_hits_are_dropped_from_access_log():
    log_filter = SuppressTrackingAccessFilter()
    assert log_filter.filter(_access_record("/api/newsletter-track-open?cid=1&sid=2")) is False
    assert log_filter.filter(_access_record("/api/newsletter-track-click?cid=1&sid=2")) is False
    assert log_filter.filter(_access_record("/api/newsletter-unsubscribe?sid=2")) is False
    assert log_filter.filter(_access_record("/api/newsletter-send")) is True
    assert log_filter.filter(_access_record("/health")) is True


def test_email_addresses_are_masked_in_log_events():
    event = redact_emails(None, "info", {"event": "Welcome mail to ana.silva@example.com failed"})
    assert event["event"] == "Welcome mail to a***@example.com failed"

    already = redact_emails(None, "info", {"event": "SMTP: email sent successfully to a***@example.com"})
    assert already["event"] == "SMTP: email sent successfully to a***@example.com"

    untouched = redact_emails(None, "info", {"event": "Campaign 4 finalized", "campaign_id": 4})
    assert untouched == {"event": "Campaign 4 finalized", "campaign_id": 4}
