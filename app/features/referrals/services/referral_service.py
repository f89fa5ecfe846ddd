import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.features.referrals.models.referral import TRACKING_FIELDS, Referral, ReferralStatus
from app.features.referrals.schemas.referral import ReferralCreateRequest, ReferralCreateResult
from app.features.referrals.services.notifications import notify_internal, notify_referred
from app.features.referrals.utils.validators import (
    clean_tracking_field,
    is_email_format,
    is_pe_mobile,
    normalize_email,
    normalize_phone,
)
from app.platform.config import settings
from app.platform.exceptions import (
    Conflict,
    InternalError,
    RateLimited,
    Unauthorized,
    ValidationFailed,
)
from app.platform.services.identity import AuthUser, resolve_user

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_MESSAGE = "Este correo ya fue registrado."
DUPLICATE_PHONE_MESSAGE = "Este teléfono ya fue registrado."
DUPLICATE_UNKNOWN_MESSAGE = "Este referido ya fue registrado."
COOLDOWN_MESSAGE = "Por seguridad, espera 5 minutos antes de registrar otro referido."


def classify_unique_violation(exc: IntegrityError) -> Optional[str]:
    """
    Map a database integrity error to the conflict message for the field that
    collided, or None when the error is not a unique violation.
    """
    orig = getattr(exc, "orig", None) or exc
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    text = str(orig).lower()

    is_unique = (
        code == "23505"
        or "duplicate key" in text
        or "unique constraint" in text
    )
    if not is_unique:
        return None

    if "referred_phone" in text:
        return DUPLICATE_PHONE_MESSAGE
    if "referred_email" in text:
        return DUPLICATE_EMAIL_MESSAGE
    return DUPLICATE_UNKNOWN_MESSAGE


class ReferralService:
    """Referral submission, claim and the referrer's own listing."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=settings.REFERRAL_COOLDOWN_MINUTES)

    async def submit(self, request: ReferralCreateRequest) -> ReferralCreateResult:
        """
        Validate, rate-limit, de-duplicate and store a referral, then notify.

        Each gate raises on failure, so nothing is written unless every check
        before the insert passed. Notification failures never fail the request.
        """
        referred_email = normalize_email(request.referredEmail)
        referred_phone = normalize_phone(request.referredPhone)
        tracking = {
            field: clean_tracking_field(getattr(request, field), max_len)
            for field, max_len in TRACKING_FIELDS.items()
        }

        name = request.referredName
        if not isinstance(name, str) or not name.strip():
            raise ValidationFailed("Nombre del referido requerido.")
        if referred_email is not None and not is_email_format(referred_email):
            raise ValidationFailed("Correo del referido inválido.")
        if not isinstance(request.referredPhone, str) or not is_pe_mobile(referred_phone):
            raise ValidationFailed("Teléfono del referido inválido (9 dígitos, solo números).")
        if request.consent is not True:
            raise ValidationFailed("Debes confirmar la autorización del referido.")

        referrer_user_id, referrer_email = await self._resolve_referrer(request)

        await self._check_cooldown(referrer_user_id, referrer_email)
        await self._check_duplicates(referred_email, referred_phone)

        referral = Referral(
            referrer_user_id=referrer_user_id,
            referrer_email=referrer_email,
            referred_name=name.strip(),
            referred_email=referred_email,
            referred_phone=referred_phone,
            consent=True,
            status=ReferralStatus.registered.value,
            **tracking,
        )
        await self._insert(referral)

        logger.info(
            f"Referral {referral.id} created "
            f"({'user ' + referrer_user_id if referrer_user_id else 'anonymous referrer'})"
        )

        email_sent = await notify_referred(referral)
        internal_email_sent = await notify_internal(referral)

        return ReferralCreateResult(
            id=referral.id,
            email_sent=email_sent,
            internal_email_sent=internal_email_sent,
        )

    async def _resolve_referrer(self, request: ReferralCreateRequest) -> tuple[Optional[str], Optional[str]]:
        # A valid session wins; an invalid token silently falls back to the email path
        user = await resolve_user(request.accessToken)
        if user is not None:
            return user.id, normalize_email(user.email)

        referrer_email = normalize_email(request.referrerEmail)
        if not referrer_email or not is_email_format(referrer_email):
            raise ValidationFailed("Ingresa tu correo (referidor) válido.")
        return None, referrer_email

    async def _check_cooldown(self, referrer_user_id: Optional[str], referrer_email: Optional[str]):
        since = datetime.now(timezone.utc) - self.cooldown

        query = select(Referral.id).where(Referral.created_at >= since).limit(1)
        if referrer_user_id:
            query = query.where(Referral.referrer_user_id == referrer_user_id)
        else:
            query = query.where(Referral.referrer_email == referrer_email)

        try:
            result = await self.db.execute(query)
            recent = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Cooldown lookup failed: {e}")
            raise InternalError("No pudimos validar seguridad del registro. Intenta nuevamente.")

        if recent is not None:
            logger.info(f"Cooldown active for referrer {referrer_user_id or referrer_email}")
            raise RateLimited(COOLDOWN_MESSAGE)

    async def _exists(self, condition) -> bool:
        # Own session per probe so both probes can run at the same time
        session_factory = async_sessionmaker(self.db.bind, expire_on_commit=False)
        async with session_factory() as session:
            result = await session.execute(select(Referral.id).where(condition).limit(1))
            return result.scalar_one_or_none() is not None

    async def _check_duplicates(self, referred_email: Optional[str], referred_phone: str):
        """Fast-path rejection; the unique constraints remain the real guard."""

        async def no_email() -> bool:
            return False

        email_probe = (
            self._exists(Referral.referred_email == referred_email) if referred_email else no_email()
        )
        phone_probe = self._exists(Referral.referred_phone == referred_phone)

        email_taken, phone_taken = await asyncio.gather(
            email_probe, phone_probe, return_exceptions=True
        )

        if isinstance(email_taken, BaseException):
            logger.error(f"Duplicate email lookup failed: {email_taken}")
            raise InternalError("Error validando duplicados (correo).")
        if isinstance(phone_taken, BaseException):
            logger.error(f"Duplicate phone lookup failed: {phone_taken}")
            raise InternalError("Error validando duplicados (teléfono).")

        if email_taken:
            logger.info("Rejected referral: referred email already registered")
            raise Conflict(DUPLICATE_EMAIL_MESSAGE)
        if phone_taken:
            logger.info("Rejected referral: referred phone already registered")
            raise Conflict(DUPLICATE_PHONE_MESSAGE)

    async def _insert(self, referral: Referral):
        self.db.add(referral)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            message = classify_unique_violation(e)
            if message is None:
                logger.error(f"Referral insert rejected by the database: {e}")
                raise InternalError("Error guardando el referido.")
            # Lost the race against a concurrent submission
            logger.info(f"Unique constraint fired on insert: {message}")
            raise Conflict(message)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Referral insert failed: {e}")
            raise InternalError("Error guardando el referido.")

        await self.db.refresh(referral)

    async def claim(self, access_token) -> int:
        """
        Attach anonymous referrals registered with the caller's email to the
        caller's account. Safe to repeat: already claimed rows are skipped.
        """
        if not access_token or not isinstance(access_token, str):
            raise ValidationFailed("Access token requerido.")

        user = await resolve_user(access_token)
        if user is None:
            raise Unauthorized("Sesión inválida.")

        return await self.claim_for_user(user)

    async def claim_for_user(self, user: AuthUser) -> int:
        email = normalize_email(user.email)
        if not email:
            raise ValidationFailed("Tu usuario no tiene email.")

        statement = (
            update(Referral)
            .where(Referral.referrer_user_id.is_(None), Referral.referrer_email == email)
            .values(referrer_user_id=user.id)
        )
        try:
            result = await self.db.execute(statement)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Claim for user {user.id} failed: {e}")
            raise InternalError("No se pudo asociar tus referidos.")

        claimed = result.rowcount or 0
        if claimed:
            logger.info(f"User {user.id} claimed {claimed} referral(s)")
        return claimed

    async def list_for_user(self, user: AuthUser) -> List[Referral]:
        query = (
            select(Referral)
            .where(Referral.referrer_user_id == user.id)
            .order_by(Referral.created_at.desc())
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Listing referrals for user {user.id} failed: {e}")
            raise InternalError("Error cargando referidos.")
        return list(result.scalars().all())
