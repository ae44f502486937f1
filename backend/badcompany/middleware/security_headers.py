"""Security headers middleware for adding HTTP security headers to responses."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import logging

from badcompany.config import Settings, get_settings

logger = logging.getLogger(__name__)


def build_security_headers(settings: Settings) -> dict[str, str]:
    """Headers applied to every response, computed once from settings."""
    headers = {
        "X-Frame-Options": settings.security_x_frame_options,
        "Referrer-Policy": settings.security_referrer_policy,
        "Permissions-Policy": settings.security_permissions_policy,
    }
    if settings.security_x_content_type_options:
        headers["X-Content-Type-Options"] = "nosniff"
    if settings.security_hsts_enabled:
        hsts_value = f"max-age={settings.security_hsts_max_age}"
        if settings.security_hsts_include_subdomains:
            hsts_value += "; includeSubDomains"
        headers["Strict-Transport-Security"] = hsts_value
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds security headers to HTTP responses.

    Content-Security-Policy is only attached to documents (HTML/JSON); the
    tracking pixel and redirects are loaded by mail clients and do not need it.
    """

    def __init__(self, app, **options):
        super().__init__(app)
        self.settings = get_settings()
        self.headers = build_security_headers(self.settings)

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        if not self.settings.security_headers_enabled:
            return response

        for name, value in self.headers.items():
            response.headers[name] = value

        content_type = response.headers.get("content-type", "")
        if self.settings.security_csp_enabled and content_type.startswith(("text/html", "application/json")):
            response.headers["Content-Security-Policy"] = self.settings.security_csp_directives

        return response
