from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.profiles.models.profile import Profile
from app.platform.auth import get_current_identity
from app.platform.db.session import get_db
from app.platform.exceptions import Forbidden, InternalError
from app.platform.logger import get_logger
from app.platform.services.identity import AuthUser

logger = get_logger(__name__)


async def get_current_admin(
    current_user: AuthUser = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> AuthUser:
    """
    Admin gate: 401 without a valid identity, 403 unless profiles.role == "admin".
    """
    try:
        result = await db.execute(select(Profile).where(Profile.id == current_user.id))
        profile = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error(f"Profile lookup for {current_user.id} failed: {e}")
        raise InternalError("Error validando permisos.")

    if profile is None or not profile.is_admin:
        logger.warning(f"Non-admin user {current_user.id} tried to reach the admin API")
        raise Forbidden()

    return current_user
