"""Global authentication middleware that enforces JWT auth on all routes by default."""

import logging

import jwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from badcompany.auth.admin import decode_access_token, extract_token

logger = logging.getLogger(__name__)

# Routes that do not require authentication (prefix matching)
PUBLIC_ROUTES: list[str] = [
    "/",
    "/health",
    "/metrics",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/api/newsletter-track-open",
    "/api/newsletter-track-click",
    "/api/newsletter-unsubscribe",
    "/api/visitors",
    "/api/contact",
    "/api/budget-request",
]

# Routes public for one method only (signup is public, the subscriber list is not)
PUBLIC_METHOD_ROUTES: set[tuple[str, str]] = {
    ("POST", "/api/newsletter-subscribe"),
}


def _is_public(method: str, path: str) -> bool:
    """Check if a request path matches any public route (exact or prefix)."""
    if (method, path.rstrip("/") or "/") in PUBLIC_METHOD_ROUTES:
        return True
    for route in PUBLIC_ROUTES:
        if route == "/":
            if path == "/":
                return True
        elif path == route or path.startswith(route + "/"):
            return True
    return False


def _unauthenticated() -> JSONResponse:
    return JSONResponse(status_code=401, content={"error": "Not authenticated"})


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that rejects unauthenticated requests to non-public routes."""

    async def dispatch(self, request: Request, call_next):
        # Always allow CORS preflight
        if request.method == "OPTIONS":
            return await call_next(request)

        if _is_public(request.method, request.url.path):
            return await call_next(request)

        token = extract_token(request)
        if not token:
            return _unauthenticated()

        try:
            claims = decode_access_token(token)
        except jwt.PyJWTError as e:
            logger.info(f"Rejected token for {request.url.path}: {type(e).__name__}")
            return _unauthenticated()

        if not claims.get("sub"):
            return _unauthenticated()

        request.state.user_id = claims["sub"]
        request.state.token_claims = claims
        return await call_next(request)
