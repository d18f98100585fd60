"""
Application settings loaded from environment variables.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ── Security Secrets ──────────────────────────────────────────────────
    jwt_secret: str = "change-me-jwt-secret-key"       # HMAC secret for bearer tokens
    jwt_expiry_seconds: int = 604800                    # 7 days
    token_encryption_key: str = "change-me-token-encryption-key"  # Fernet key or passphrase

    # ── OAuth ────────────────────────────────────────────────────────────
    oauth_redirect_base: str = "http://localhost:8000"  # base URL for OAuth callbacks
    oauth_state_ttl_seconds: int = 600
    http_timeout_seconds: float = 30.0                  # every provider call
    config_cache_ttl_seconds: int = 60

    # ── Token refresh sweep ──────────────────────────────────────────────
    token_refresh_enabled: bool = True
    token_refresh_interval_seconds: int = 300           # 5 minutes
    token_refresh_lookahead_seconds: int = 600          # refresh if expiring within 10 minutes

    # ── Database ─────────────────────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./integrations.db"
    database_echo: bool = False

    # ── Server ───────────────────────────────────────────────────────────
    port: int = 8000
    host: str = "0.0.0.0"
    debug: bool = False
    cors_origins: list = ["*"]
    log_level: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
    }


config = Settings()
