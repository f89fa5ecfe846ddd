from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from app.features.referrals.models.referral import Referral
from app.features.referrals.services.notifications import (
    notify_internal,
    notify_referred,
    render_internal_notice,
    render_referred_notice,
)
from app.platform.config import settings
from app.platform.services.email import EmailDeliveryError, send_email


def make_referral(**overrides):
    fields = {
        "id": "ref-1",
        "created_at": datetime(2026, 3, 1, 15, 0, tzinfo=timezone.utc),
        "referrer_email": "maria@example.com",
        "referred_name": "Ana <b>Lopez</b>",
        "referred_email": "ana@example.com",
        "referred_phone": "987654321",
        "consent": True,
        "status": "registered",
        "utm_source": "facebook",
    }
    fields.update(overrides)
    return Referral(**fields)


def test_referred_notice_escapes_html():
    subject, html = render_referred_notice(make_referral())

    assert subject == "Te han referido a Verisure"
    assert "Ana &lt;b&gt;Lopez&lt;/b&gt;" in html
    assert "maria@example.com" in html


def test_referred_notice_without_referrer_email():
    _, html = render_referred_notice(make_referral(referrer_email=None))

    assert "una persona te ha referido" in html


def test_internal_notice_lists_tracking():
    subject, html = render_internal_notice(make_referral())

    assert subject == "Nuevo referido: Ana <b>Lopez</b> (987654321)"
    assert "facebook" in html
    assert "<td>—</td>" in html  # utm_medium is empty
    assert "ref-1" in html


@pytest.mark.asyncio
async def test_notify_referred_skips_without_email():
    mock_send = MagicMock()
    with patch("app.features.referrals.services.notifications.send_email", mock_send):
        assert await notify_referred(make_referral(referred_email=None)) is False
    mock_send.assert_not_called()


@pytest.mark.asyncio
async def test_notify_internal_skips_without_recipient(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_INTERNAL_TO", "")
    mock_send = MagicMock()
    with patch("app.features.referrals.services.notifications.send_email", mock_send):
        assert await notify_internal(make_referral()) is False
    mock_send.assert_not_called()


def test_send_email_without_transport_raises(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "")
    monkeypatch.setattr(settings, "MAIL_HOST", "")

    with pytest.raises(EmailDeliveryError):
        send_email("ana@example.com", "Hola", "<p>Hola</p>")


def test_send_email_via_resend(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(settings, "EMAIL_FROM", "referidos@example.com")

    response = MagicMock()
    response.json.return_value = {"id": "email-1"}
    with patch("app.platform.services.email.requests.post", return_value=response) as mock_post:
        send_email("ana@example.com", "Hola", "<p>Hola</p>")

    kwargs = mock_post.call_args.kwargs
    assert kwargs["json"] == {
        "from": "referidos@example.com",
        "to": ["ana@example.com"],
        "subject": "Hola",
        "html": "<p>Hola</p>",
    }
    assert kwargs["headers"]["Authorization"] == "Bearer re_test"


def test_resend_errors_become_delivery_errors(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")

    with patch(
        "app.platform.services.email.requests.post",
        side_effect=requests.exceptions.ConnectionError("refused"),
    ):
        with pytest.raises(EmailDeliveryError):
            send_email("ana@example.com", "Hola", "<p>Hola</p>")
