"""Admin identity carried by the site's JWT and the role check for dashboard routes."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request

from badcompany.config import get_settings
from badcompany.errors import AuthorizationError

logger = logging.getLogger(__name__)

TOKEN_AUDIENCE = "badcompany:dashboard"


@dataclass(frozen=True)
class AdminIdentity:
    user_id: str
    email: Optional[str]
    role: str


def create_access_token(user_id: str, email: Optional[str], role: str, expires_minutes: Optional[int] = None) -> str:
    """Issue a signed token for a dashboard user."""
    settings = get_settings()
    lifetime = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "aud": TOKEN_AUDIENCE,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=lifetime),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict:
    """Decode and verify a token. Raises jwt.PyJWTError when invalid or expired."""
    settings = get_settings()
    return jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.algorithm],
        audience=TOKEN_AUDIENCE,
    )


def extract_token(request: Request) -> Optional[str]:
    """Read the token from the Authorization header, falling back to the cookie."""
    auth_header = request.headers.get("authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return request.cookies.get(get_settings().cookie_access_token_name)


async def current_admin(request: Request) -> AdminIdentity:
    """Dependency for dashboard routes: the caller must hold a newsletter admin role."""
    claims = getattr(request.state, "token_claims", None)
    if claims is None:
        token = extract_token(request)
        if not token:
            raise AuthorizationError("Acesso não autorizado")
        try:
            claims = decode_access_token(token)
        except jwt.PyJWTError:
            raise AuthorizationError("Acesso não autorizado")

    role = claims.get("role") or ""
    if role not in get_settings().admin_roles:
        logger.warning(f"User {claims.get('sub')} with role '{role}' denied access to {request.url.path}")
        raise AuthorizationError("Acesso não autorizado")

    return AdminIdentity(user_id=str(claims.get("sub")), email=claims.get("email"), role=role)
