"""Middleware package for FastAPI application."""

from badcompany.middleware.auth import AuthMiddleware
from badcompany.middleware.request_id import RequestIdMiddleware
from badcompany.middleware.security_headers import SecurityHeadersMiddleware

__all__ = ["AuthMiddleware", "RequestIdMiddleware", "SecurityHeadersMiddleware"]
