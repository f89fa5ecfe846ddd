import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.admin.schemas.referrals import AdminReferralOut, ReferrerProfileOut
from app.features.profiles.models.profile import Profile
from app.features.referrals.models.referral import ADMIN_SETTABLE_STATUSES, Referral
from app.features.referrals.schemas.referral import ReferralOut
from app.platform.config import settings
from app.platform.exceptions import InternalError, NotFound, ValidationFailed
from app.platform.services.identity import AuthUser

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 100
LIKE_ESCAPE = "\\"


def _to_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    # "10.0" or "1e2" are numbers too; fractions are truncated
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return int(number)


def escape_like(term: str) -> str:
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


class AdminReferralService:
    """Admin console queries: list, status update and export."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def parse_pagination(limit: Any = None, offset: Any = None) -> Tuple[int, int]:
        """Lenient parsing: garbage falls back to defaults, then values are clamped."""
        limit = min(MAX_LIMIT, max(1, _to_int(limit, DEFAULT_LIMIT)))
        offset = max(0, _to_int(offset, 0))
        return limit, offset

    @staticmethod
    def parse_status_filter(status: Optional[str]) -> Optional[str]:
        status = (status or "").strip()
        if not status:
            return None
        return status

    @staticmethod
    def build_filters(q: Optional[str] = None, status: Optional[str] = None) -> list:
        filters = []
        if status:
            filters.append(Referral.status == status)

        q = (q or "").strip()
        if q:
            pattern = f"%{escape_like(q)}%"
            filters.append(
                or_(
                    Referral.referred_name.ilike(pattern, escape=LIKE_ESCAPE),
                    Referral.referred_email.ilike(pattern, escape=LIKE_ESCAPE),
                    Referral.referred_phone.ilike(pattern, escape=LIKE_ESCAPE),
                    Referral.referrer_email.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        return filters

    async def list_referrals(
        self,
        q: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> Tuple[List[AdminReferralOut], int]:
        """
        One page of referrals (newest first) plus the total matching the filters.
        Rows are enriched with the referrer's profile in a second query.
        """
        filters = self.build_filters(q, status)

        page_query = (
            select(Referral)
            .where(*filters)
            .order_by(Referral.created_at.desc(), Referral.id.desc())
            .offset(offset)
            .limit(limit)
        )
        count_query = select(func.count(Referral.id)).where(*filters)

        try:
            total = await self.db.scalar(count_query) or 0
            result = await self.db.execute(page_query)
            referrals = list(result.scalars().all())
            profiles = await self._profiles_by_id(r.referrer_user_id for r in referrals)
        except SQLAlchemyError as e:
            logger.error(f"Admin referral listing failed: {e}")
            raise InternalError("Error cargando referidos.")

        rows = []
        for referral in referrals:
            row = AdminReferralOut.model_validate(referral)
            profile = profiles.get(referral.referrer_user_id)
            if profile is not None:
                row.referrer_profile = ReferrerProfileOut.model_validate(profile)
            rows.append(row)

        return rows, total

    async def _profiles_by_id(self, user_ids: Iterable[Optional[str]]) -> Dict[str, Profile]:
        ids = {user_id for user_id in user_ids if user_id}
        if not ids:
            return {}
        result = await self.db.execute(select(Profile).where(Profile.id.in_(ids)))
        return {profile.id: profile for profile in result.scalars().all()}

    async def update_status(self, referral_id: Any, status: Any, admin: AuthUser) -> ReferralOut:
        """Set a referral's status. Any transition is allowed; last write wins."""
        referral_id = str(referral_id or "").strip()
        status = str(status or "").strip()

        if not referral_id:
            raise ValidationFailed("ID requerido.")
        if status not in {s.value for s in ADMIN_SETTABLE_STATUSES}:
            raise ValidationFailed("Estado inválido.")

        try:
            result = await self.db.execute(select(Referral).where(Referral.id == referral_id))
            referral = result.scalar_one_or_none()
            if referral is None:
                raise NotFound("Referido no encontrado.")

            previous = referral.status
            referral.status = status
            await self.db.commit()
            await self.db.refresh(referral)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Status update of referral {referral_id} failed: {e}")
            raise InternalError("No pudimos actualizar el estado.")

        logger.info(f"Admin {admin.id} moved referral {referral_id} from {previous} to {status}")
        return ReferralOut.model_validate(referral)

    async def export_rows(
        self,
        q: Optional[str] = None,
        status: Optional[str] = None,
        chunk_size: Optional[int] = None,
    ) -> List[AdminReferralOut]:
        """
        Every row matching the filters, fetched page by page in sequence
        until the reported total is exhausted.
        """
        chunk_size = chunk_size or settings.EXPORT_CHUNK_SIZE
        rows: List[AdminReferralOut] = []
        offset = 0
        total = None

        while total is None or offset < total:
            page, total = await self.list_referrals(q=q, status=status, limit=chunk_size, offset=offset)
            if not page:
                break
            rows.extend(page)
            offset += chunk_size

        logger.info(f"Exported {len(rows)} referral(s) in chunks of {chunk_size}")
        return rows
