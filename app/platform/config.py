from pathlib import Path
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "Referidos API"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = True
    CORS_ORIGINS: List[str] = ["*"]
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # ── Database ────────────────────────────────
    DATABASE_URL: str

    # ── Identity provider (managed auth) ────────
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    # When set, access tokens are verified locally instead of calling /auth/v1/user
    SUPABASE_JWT_SECRET: Optional[str] = None
    SUPABASE_JWT_AUDIENCE: str = "authenticated"
    IDENTITY_TIMEOUT: int = 10

    # ── Email Configuration ─────────────────────
    RESEND_API_KEY: str = ""
    RESEND_API_URL: str = "https://api.resend.com/emails"
    EMAIL_FROM: str = "onboarding@resend.dev"
    EMAIL_INTERNAL_TO: str = ""
    EMAIL_TIMEOUT: int = 30

    MAIL_HOST: str = ""
    MAIL_PORT: int = 587
    MAIL_USERNAME: str = ""
    MAIL_PASSWORD: str = ""
    MAIL_ENCRYPTION: str = "tls"

    # ── Referrals ───────────────────────────────
    BRAND_NAME: str = "Verisure"
    REFERRAL_COOLDOWN_MINUTES: int = 5
    EXPORT_CHUNK_SIZE: int = 500
    EXPORT_TIMEZONE: str = "America/Lima"

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
