import logging
from typing import Optional

from starlette.concurrency import run_in_threadpool

from app.features.referrals.models.referral import Referral
from app.platform.config import settings
from app.platform.services.email import env, send_email

logger = logging.getLogger(__name__)


def render_referred_notice(referral: Referral) -> tuple[str, str]:
    template = env.get_template("referred_notice.html")
    html = template.render(
        referred_name=referral.referred_name,
        referrer=referral.referrer_email or "una persona",
        brand=settings.BRAND_NAME,
    )
    return f"Te han referido a {settings.BRAND_NAME}", html


def render_internal_notice(referral: Referral) -> tuple[str, str]:
    created_at = referral.created_at.isoformat() if referral.created_at else None
    rows = [
        ("ID", referral.id),
        ("Fecha", created_at),
        ("Referido", referral.referred_name),
        ("Email referido", referral.referred_email),
        ("Teléfono", referral.referred_phone),
        ("Referidor (email)", referral.referrer_email),
        ("Consentimiento", "Sí" if referral.consent else "No"),
        ("Status", referral.status),
        ("Camp", referral.camp),
        ("UTM Source", referral.utm_source),
        ("UTM Medium", referral.utm_medium),
        ("UTM Campaign", referral.utm_campaign),
        ("UTM Term", referral.utm_term),
        ("UTM Content", referral.utm_content),
        ("Landing", referral.landing_path),
        ("Referer", referral.referer),
    ]
    template = env.get_template("internal_notice.html")
    html = template.render(rows=rows, app_name=settings.APP_NAME)
    subject = f"Nuevo referido: {referral.referred_name} ({referral.referred_phone})"
    return subject, html


async def _deliver(to_email: str, subject: str, html: str) -> bool:
    # The referral is already committed; a failed send is reported, never raised
    try:
        await run_in_threadpool(send_email, to_email, subject, html)
    except Exception as e:
        logger.error(f"Failed to send '{subject}' to {to_email}: {e}")
        return False
    return True


async def notify_referred(referral: Referral) -> bool:
    """Informative email to the referred contact; skipped when no email was given."""
    if not referral.referred_email:
        return False
    subject, html = render_referred_notice(referral)
    return await _deliver(referral.referred_email, subject, html)


async def notify_internal(referral: Referral, to_email: Optional[str] = None) -> bool:
    """Summary for the operations mailbox; skipped when EMAIL_INTERNAL_TO is empty."""
    to_email = to_email or settings.EMAIL_INTERNAL_TO
    if not to_email:
        return False
    subject, html = render_internal_notice(referral)
    return await _deliver(to_email, subject, html)
