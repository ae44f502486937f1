"""Request ID middleware: tags each request with an ID and binds it to structlog context."""

import re
import uuid
from contextvars import ContextVar

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Accept IDs forwarded by the reverse proxy if they look sane
_FORWARDED_ID = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind request_id, method and path to the log context and echo X-Request-ID."""

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get("x-request-id", "")
        rid = incoming if _FORWARDED_ID.match(incoming) else str(uuid.uuid4())
        request_id_var.set(rid)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=rid,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)

        # Auth middleware runs inside this one, so the user is known only afterwards
        user_id = getattr(request.state, "user_id", None)
        if user_id:
            structlog.contextvars.bind_contextvars(user_id=user_id)

        response.headers["X-Request-ID"] = rid
        return response
