from typing import Any, Optional

from pydantic import BaseModel

from app.features.referrals.schemas.referral import ReferralOut


class ReferrerProfileOut(BaseModel):
    full_name: Optional[str] = None
    has_verisure: Optional[bool] = None
    role: Optional[str] = None

    class Config:
        from_attributes = True


class AdminReferralOut(ReferralOut):
    referrer_profile: Optional[ReferrerProfileOut] = None


class UpdateStatusRequest(BaseModel):
    id: Any = None
    status: Any = None

    class Config:
        json_schema_extra = {"example": {"id": "0192f3c4-...", "status": "contacted"}}
