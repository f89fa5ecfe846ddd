import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.referrals.schemas.referral import ReferralCreateRequest, ReferralOut
from app.features.referrals.services.referral_service import ReferralService
from app.platform.auth import get_current_identity
from app.platform.db.session import get_db
from app.platform.exceptions import InternalError
from app.platform.response import api_response
from app.platform.services.identity import AuthUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/referrals", tags=["referrals"])


@router.post("/create")
async def create_referral(body: ReferralCreateRequest, db: AsyncSession = Depends(get_db)):
    """
    Register a referred contact, or claim anonymous referrals.

    - Without a valid `accessToken` the referrer is identified by `referrerEmail`.
    - With `action: "claim"` the caller's anonymous referrals (same email) are
      attached to their account; returns how many rows were claimed.
    """
    service = ReferralService(db)
    try:
        if body.action == "claim":
            claimed = await service.claim(body.accessToken)
            return api_response(message="Referidos asociados.", claimed=claimed)

        result = await service.submit(body)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error creating referral: {e}")
        raise InternalError()

    return api_response(
        message="Referido registrado.",
        email_sent=result.email_sent,
        internal_email_sent=result.internal_email_sent,
    )


@router.get("/mine")
async def list_my_referrals(
    current_user: AuthUser = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """
    Referrals attributed to the authenticated referrer, newest first.
    Anonymous referrals sent with the same email are claimed beforehand.
    """
    service = ReferralService(db)

    try:
        await service.claim_for_user(current_user)
    except HTTPException as e:
        # listing still works without the claim
        logger.warning(f"Claim before listing skipped for user {current_user.id}: {e.detail}")

    try:
        referrals = await service.list_for_user(current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error listing referrals for {current_user.id}: {e}")
        raise InternalError()

    data = [ReferralOut.model_validate(r) for r in referrals]
    return api_response(message="Referidos cargados.", data=data, total=len(data))
