import structlog
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from badcompany.api import (
    contact_forms,
    newsletter_campaigns,
    newsletter_send,
    newsletter_subscribers,
    newsletter_tags,
    newsletter_tracking,
    visitors,
)
from badcompany.config import get_settings
from badcompany.database import dispose_engine, get_engine, init_db
from badcompany.errors import NewsletterError, error_body, newsletter_error_handler
from badcompany.jobs.reconcile_counters import reconcile_counters_job
from badcompany.logging_config import configure_logging
from badcompany.middleware.auth import AuthMiddleware
from badcompany.middleware.request_id import RequestIdMiddleware
from badcompany.middleware.security_headers import SecurityHeadersMiddleware

# Configure structured logging
configure_logging()
logger = structlog.get_logger(__name__)

settings = get_settings()
scheduler = AsyncIOScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler_started = False

    # Startup: Initialize database
    await init_db()
    logger.info("Database initialized")

    if settings.scheduler_enabled:
        scheduler.add_job(
            reconcile_counters_job,
            'interval',
            minutes=settings.counter_reconcile_interval_minutes,
            id='reconcile_counters',
        )
        scheduler.start()
        scheduler_started = True
        logger.info(
            f"Background jobs scheduled (counter reconciliation every "
            f"{settings.counter_reconcile_interval_minutes} minutes)"
        )

    yield

    # Shutdown
    if scheduler_started:
        scheduler.shutdown()
        logger.info("Scheduler shut down")

    await dispose_engine()
    logger.info("Shutting down...")


app = FastAPI(
    title="BadCompany API",
    description="Newsletter campaigns, engagement tracking and visitor analytics for the BadCompany site",
    version="0.1.0",
    lifespan=lifespan,
    docs_url=None if settings.app_env == "production" else "/docs",
    redoc_url=None if settings.app_env == "production" else "/redoc",
    openapi_url=None if settings.app_env == "production" else "/openapi.json",
)

# Prometheus metrics
if settings.prometheus_enabled:
    from prometheus_fastapi_instrumentator import Instrumentator

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/metrics", "/api/newsletter-track-open"],
    ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

# CORS middleware - allow both www and non-www versions
cors_origins = [
    settings.frontend_url,
    "http://localhost:3000",
]
if "://www." not in settings.frontend_url:
    cors_origins.append(settings.frontend_url.replace("://", "://www."))
else:
    cors_origins.append(settings.frontend_url.replace("://www.", "://"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(dict.fromkeys(cors_origins)),
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

# Auth middleware (inner, runs first on requests)
app.add_middleware(AuthMiddleware)

# Request ID middleware (between auth and security headers)
app.add_middleware(RequestIdMiddleware)

# Security headers middleware (outer, wraps all responses including auth 401s)
app.add_middleware(SecurityHeadersMiddleware)

app.add_exception_handler(NewsletterError, newsletter_error_handler)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=error_body("Dados inválidos", jsonable_encoder(exc.errors())))


# Include routers
app.include_router(newsletter_send.router, prefix="/api", tags=["newsletter"])
app.include_router(newsletter_tracking.router, prefix="/api", tags=["newsletter-tracking"])
app.include_router(newsletter_campaigns.router, prefix="/api", tags=["newsletter-campaigns"])
app.include_router(newsletter_tags.router, prefix="/api", tags=["newsletter-tags"])
app.include_router(newsletter_subscribers.router, prefix="/api", tags=["newsletter-subscribers"])
app.include_router(visitors.router, prefix="/api")
app.include_router(contact_forms.router, prefix="/api", tags=["forms"])


@app.get("/")
async def root():
    if settings.app_env == "production":
        return {"status": "ok"}
    return {
        "message": "BadCompany API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Health check endpoint that verifies database connectivity."""
    from sqlalchemy import text

    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except (SQLAlchemyError, OSError, ConnectionError, TimeoutError) as e:
        logger.warning(f"Health check failed: {type(e).__name__}: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "disconnected"}
        )
