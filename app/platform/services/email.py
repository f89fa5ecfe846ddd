import os
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import requests
from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.platform.config import settings
from app.platform.logger import get_logger

# Initialize Logger
logger = get_logger("email_service")

current_dir = os.path.dirname(os.path.abspath(__file__))
template_dir = os.path.join(current_dir, "../../features/referrals/templates")

if not os.path.exists(template_dir):
    template_dir = os.path.join(os.getcwd(), "app/features/referrals/templates")

env = Environment(
    loader=FileSystemLoader(template_dir),
    autoescape=select_autoescape(["html"]),
)


class EmailDeliveryError(Exception):
    """Raised when no transport could deliver the message."""


def send_email(to_email: str, subject: str, html: str):
    """
    Send email through the transactional provider (Resend).
    Falls back to direct SMTP if no provider key is configured.
    """
    if settings.RESEND_API_KEY:
        send_email_via_resend(to_email, subject, html)
    elif settings.MAIL_HOST:
        logger.warning("Resend not configured, attempting direct SMTP")
        send_email_direct_smtp(to_email, subject, html)
    else:
        raise EmailDeliveryError("No email transport configured")


def send_email_via_resend(to_email: str, subject: str, html: str):
    """Send email via the Resend HTTP API"""
    payload = {
        "from": settings.EMAIL_FROM,
        "to": [to_email],
        "subject": subject,
        "html": html,
    }

    headers = {
        "Authorization": f"Bearer {settings.RESEND_API_KEY}",
        "Content-Type": "application/json",
    }

    try:
        response = requests.post(
            settings.RESEND_API_URL,
            json=payload,
            headers=headers,
            timeout=settings.EMAIL_TIMEOUT,
        )
        response.raise_for_status()

        result = response.json()
        logger.info(f"Email sent via Resend to {to_email}: {result.get('id')}")

    except requests.exceptions.Timeout as e:
        logger.error(f"Resend timeout for {to_email}")
        raise EmailDeliveryError("Email provider timeout") from e

    except requests.exceptions.RequestException as e:
        logger.error(f"Resend request failed: {str(e)}")
        if getattr(e, "response", None) is not None:
            logger.error(f"Response status: {e.response.status_code}")
            logger.error(f"Response body: {e.response.text}")
        raise EmailDeliveryError(f"Email provider error: {str(e)}") from e


def send_email_direct_smtp(to_email: str, subject: str, html: str):
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = to_email

    msg.attach(MIMEText(html, "html"))

    port = settings.MAIL_PORT
    try:
        if port == 465:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(settings.MAIL_HOST, port, context=context) as server:
                server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
                server.sendmail(settings.EMAIL_FROM, to_email, msg.as_string())
        else:
            with smtplib.SMTP(settings.MAIL_HOST, port) as server:
                server.ehlo()

                if str(settings.MAIL_ENCRYPTION).upper() in ["TLS", "TRUE"]:
                    server.starttls()
                    server.ehlo()

                if settings.MAIL_USERNAME:
                    server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
                server.sendmail(settings.EMAIL_FROM, to_email, msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"SMTP delivery to {to_email} failed: {str(e)}")
        raise EmailDeliveryError(f"SMTP error: {str(e)}") from e

    logger.info(f"Email sent via SMTP to {to_email}")
