"""
Test configuration and fixtures for the referrals API.

Each test gets its own SQLite database file (aiosqlite) with the full schema,
and the app's get_db dependency is pointed at it. Access tokens are signed
locally with a test secret, so no identity provider is contacted.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone

from dotenv import load_dotenv

load_dotenv()

TEST_JWT_SECRET = "test-secret-for-referral-tokens-0123456789"

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{tempfile.mktemp(suffix='.db')}"
os.environ["SUPABASE_JWT_SECRET"] = TEST_JWT_SECRET
os.environ["RESEND_API_KEY"] = ""
os.environ["MAIL_HOST"] = ""
os.environ["EMAIL_INTERNAL_TO"] = ""

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.features.profiles.models.profile import Profile
from app.features.referrals.models.referral import Referral  # noqa: F401 (registers the table)
from app.main import app
from app.platform.db.base import Base
from app.platform.db.session import get_db


def make_token(user_id: str, email: str | None = None, expires_in: int = 3600, audience: str = "authenticated"):
    payload = {
        "sub": user_id,
        "aud": audience,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


@pytest.fixture
def token_for():
    return make_token


@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'referrals.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client against the app, with get_db bound to the per-test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_db, None)


@pytest_asyncio.fixture
async def admin_headers(db_session):
    db_session.add(Profile(id="admin-1", role="admin", full_name="Operaciones"))
    await db_session.commit()
    return {"Authorization": f"Bearer {make_token('admin-1', 'ops@example.com')}"}


@pytest_asyncio.fixture
async def referrer_headers(db_session):
    db_session.add(Profile(id="user-1", role="referrer", full_name="Maria Perez", has_verisure=True))
    await db_session.commit()
    return {"Authorization": f"Bearer {make_token('user-1', 'maria@example.com')}"}
