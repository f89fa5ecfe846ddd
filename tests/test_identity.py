from unittest.mock import AsyncMock, patch

import httpx
import pytest

from app.platform.config import settings
from app.platform.services.identity import AuthUser, resolve_user


@pytest.mark.asyncio
async def test_resolves_locally_signed_token(token_for):
    user = await resolve_user(token_for("user-1", "maria@example.com"))

    assert user == AuthUser(id="user-1", email="maria@example.com")


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "", 123, "not.a.jwt"])
async def test_unusable_tokens_resolve_to_none(token):
    assert await resolve_user(token) is None


@pytest.mark.asyncio
async def test_expired_and_foreign_audience_tokens_are_rejected(token_for):
    assert await resolve_user(token_for("user-1", expires_in=-1)) is None
    assert await resolve_user(token_for("user-1", audience="anon")) is None


@pytest.mark.asyncio
async def test_remote_lookup_when_no_secret(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", None)
    monkeypatch.setattr(settings, "SUPABASE_URL", "https://project.supabase.co")

    fetch = AsyncMock(return_value={"id": "user-3", "email": "luis@example.com"})
    with patch("app.platform.services.identity.fetch_provider_user", fetch):
        user = await resolve_user("opaque-token")

    assert user == AuthUser(id="user-3", email="luis@example.com")
    fetch.assert_awaited_once_with("opaque-token")


@pytest.mark.asyncio
async def test_remote_lookup_failures_mean_no_identity(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", None)
    monkeypatch.setattr(settings, "SUPABASE_URL", "https://project.supabase.co")

    with patch(
        "app.platform.services.identity.fetch_provider_user",
        AsyncMock(side_effect=httpx.ConnectError("down")),
    ):
        assert await resolve_user("opaque-token") is None

    with patch("app.platform.services.identity.fetch_provider_user", AsyncMock(return_value=None)):
        assert await resolve_user("opaque-token") is None


@pytest.mark.asyncio
async def test_unconfigured_provider(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", None)
    monkeypatch.setattr(settings, "SUPABASE_URL", "")

    assert await resolve_user("opaque-token") is None
