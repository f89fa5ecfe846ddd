import enum

from sqlalchemy import Boolean, CheckConstraint, Column, Index, String, Text, UniqueConstraint

from app.platform.db.base import BaseModel


class ReferralStatus(str, enum.Enum):
    """Lifecycle of a referral as tracked by the operations team"""
    registered = "registered"
    contacted = "contacted"
    quoted = "quoted"
    contracted = "contracted"
    # Shown in the referrer portal; only set by direct database edits
    invalid = "invalid"


ADMIN_SETTABLE_STATUSES = (
    ReferralStatus.registered,
    ReferralStatus.contacted,
    ReferralStatus.quoted,
    ReferralStatus.contracted,
)

# Tracking column -> max stored length
TRACKING_FIELDS = {
    "camp": 80,
    "utm_source": 80,
    "utm_medium": 80,
    "utm_campaign": 120,
    "utm_term": 120,
    "utm_content": 120,
    "landing_path": 200,
    "referer": 300,
}


class Referral(BaseModel):
    """
    A referred contact registered by a referrer.

    The referrer is either an authenticated user (referrer_user_id) or, for
    anonymous submissions, just an email (referrer_email). Anonymous rows are
    attached to the user later by the claim operation.
    """
    __tablename__ = "referrals"

    # Referrer attribution (profiles live in the managed backend, no FK here)
    referrer_user_id = Column(String, nullable=True, index=True)
    referrer_email = Column(String(254), nullable=True, index=True)

    # Referred party
    referred_name = Column(String(200), nullable=False)
    referred_email = Column(String(254), nullable=True)
    referred_phone = Column(String(9), nullable=False)

    consent = Column(Boolean, nullable=False, default=True)
    status = Column(String(20), nullable=False, default=ReferralStatus.registered.value, index=True)
    notes = Column(Text, nullable=True)

    # Campaign tracking, captured once at creation
    camp = Column(String(TRACKING_FIELDS["camp"]), nullable=True)
    utm_source = Column(String(TRACKING_FIELDS["utm_source"]), nullable=True)
    utm_medium = Column(String(TRACKING_FIELDS["utm_medium"]), nullable=True)
    utm_campaign = Column(String(TRACKING_FIELDS["utm_campaign"]), nullable=True)
    utm_term = Column(String(TRACKING_FIELDS["utm_term"]), nullable=True)
    utm_content = Column(String(TRACKING_FIELDS["utm_content"]), nullable=True)
    landing_path = Column(String(TRACKING_FIELDS["landing_path"]), nullable=True)
    referer = Column(String(TRACKING_FIELDS["referer"]), nullable=True)

    __table_args__ = (
        UniqueConstraint("referred_email", name="referrals_referred_email_uq"),
        UniqueConstraint("referred_phone", name="referrals_referred_phone_uq"),
        CheckConstraint(
            "referrer_user_id IS NOT NULL OR referrer_email IS NOT NULL",
            name="referrals_referrer_present",
        ),
        Index("idx_referrals_created_at", "created_at"),
    )
