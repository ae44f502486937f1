"""Structured logging: structlog rendering for both structlog and stdlib loggers."""

import logging
import re
import sys

import structlog

from badcompany.config import get_settings

# Hit once per opened email or clicked link; too noisy for the access log
TRACKING_PATHS = (
    "/api/newsletter-track-open",
    "/api/newsletter-track-click",
    "/api/newsletter-unsubscribe",
)

_EMAIL = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")


class SuppressTrackingAccessFilter(logging.Filter):
    """Drops uvicorn access entries for tracking and unsubscribe hits."""

    def filter(self, record: logging.LogRecord) -> bool:
        args = record.args
        if isinstance(args, tuple) and len(args) >= 3 and isinstance(args[2], str):
            return not args[2].startswith(TRACKING_PATHS)
        return True


def redact_emails(logger, method_name, event_dict):
    """Mask subscriber addresses (``a***@example.com``) left in the event text."""
    event = event_dict.get("event")
    if isinstance(event, str) and "@" in event:
        event_dict["event"] = _EMAIL.sub(r"\1***@\2", event)
    return event_dict


def configure_logging() -> None:
    """JSON lines in production, console output in development."""
    settings = get_settings()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        redact_emails,
    ]
    if settings.app_env == "production":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if settings.app_debug else logging.INFO)

    logging.getLogger("uvicorn.access").addFilter(SuppressTrackingAccessFilter())
