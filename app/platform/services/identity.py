"""
Identity provider client.

Access tokens are issued by the managed auth provider (OTP codes, magic
links and admin passwords all end up as the same kind of JWT). This module
only answers one question: which user does a token belong to?
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
import jwt

from app.platform.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None


def decode_provider_token(token: str) -> dict:
    """Decode and verify a provider-issued JWT with the shared secret"""
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.SUPABASE_JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        raise ValueError("Token has expired")
    except jwt.PyJWTError:
        raise ValueError("Invalid token")


async def fetch_provider_user(token: str) -> Optional[dict]:
    """Ask the provider's /auth/v1/user endpoint who owns the token."""
    url = f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/user"
    headers = {"Authorization": f"Bearer {token}", "apikey": settings.SUPABASE_ANON_KEY}

    async with httpx.AsyncClient(timeout=settings.IDENTITY_TIMEOUT) as client:
        response = await client.get(url, headers=headers)

    if response.status_code in (401, 403):
        return None
    response.raise_for_status()
    return response.json()


async def resolve_user(token: Optional[str]) -> Optional[AuthUser]:
    """
    Resolve an access token to an AuthUser.

    Returns None for a missing, malformed, expired or unknown token, and also
    when the provider cannot be reached: callers decide whether "no identity"
    means 401 or the anonymous path.
    """
    if not token or not isinstance(token, str):
        return None

    if settings.SUPABASE_JWT_SECRET:
        try:
            payload = decode_provider_token(token)
        except ValueError as e:
            logger.info(f"Rejected access token: {e}")
            return None
        user_id = payload.get("sub")
        if not user_id:
            return None
        return AuthUser(id=str(user_id), email=payload.get("email") or None)

    if not settings.SUPABASE_URL:
        logger.error("Identity provider not configured (SUPABASE_URL / SUPABASE_JWT_SECRET)")
        return None

    try:
        data = await fetch_provider_user(token)
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Identity provider lookup failed: {e}")
        return None

    if not data or not data.get("id"):
        return None
    return AuthUser(id=str(data["id"]), email=data.get("email") or None)
