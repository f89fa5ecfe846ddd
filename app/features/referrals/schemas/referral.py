from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class ReferralCreateRequest(BaseModel):
    """
    Body of POST /api/referrals/create.

    Fields are loosely typed on purpose: the submission pipeline owns the
    validation so every failure gets its own message. With action == "claim"
    only accessToken is read.
    """
    action: Optional[str] = None
    accessToken: Any = None

    referrerEmail: Any = None
    referredName: Any = None
    referredEmail: Any = None
    referredPhone: Any = None
    consent: Any = None

    # tracking / campaign (sent by the client from URL params)
    camp: Any = None
    utm_source: Any = None
    utm_medium: Any = None
    utm_campaign: Any = None
    utm_term: Any = None
    utm_content: Any = None
    landing_path: Any = None
    referer: Any = None

    class Config:
        json_schema_extra = {
            "example": {
                "referrerEmail": "maria@example.com",
                "referredName": "Ana Lopez",
                "referredEmail": "ana@example.com",
                "referredPhone": "987 654 321",
                "consent": True,
                "utm_source": "facebook",
                "landing_path": "/",
            }
        }


class ReferralCreateResult(BaseModel):
    id: str
    email_sent: bool = False
    internal_email_sent: bool = False


class ReferralOut(BaseModel):
    id: str
    created_at: datetime
    status: str
    referrer_email: Optional[str] = None
    referrer_user_id: Optional[str] = None
    referred_name: str
    referred_email: Optional[str] = None
    referred_phone: str
    consent: bool = True
    notes: Optional[str] = None

    camp: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None
    landing_path: Optional[str] = None
    referer: Optional[str] = None

    class Config:
        from_attributes = True

