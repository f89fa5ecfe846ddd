"""
Bearer-token authentication

Resolves the `Authorization: Bearer <token>` header to the identity issued by
the managed auth provider. Anything short of a valid identity is a 401.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.platform.exceptions import Unauthorized
from app.platform.logger import get_logger
from app.platform.services.identity import AuthUser, resolve_user

logger = get_logger(__name__)

# auto_error=False: a missing header must produce our own 401 body, not FastAPI's 403
security = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthUser:
    if credentials is None or not credentials.credentials:
        raise Unauthorized()

    user = await resolve_user(credentials.credentials)
    if user is None:
        logger.warning("Request with an invalid or expired access token")
        raise Unauthorized()

    return user
