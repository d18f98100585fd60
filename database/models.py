"""
SQLAlchemy ORM models for integration configuration and tokens.

Both tables are keyed by ``(tenant_id, provider)`` and are independent:
a configuration may exist without a token (not yet authorised).
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class IntegrationConfiguration(Base):
    __tablename__ = "integration_configurations"
    __table_args__ = (
        UniqueConstraint("tenant_id", "provider", name="uq_integration_configuration_tenant_provider"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(128), nullable=False, index=True)
    provider = Column(String(32), nullable=False)
    client_id = Column(String(255), nullable=False)
    client_secret = Column(Text, nullable=False)
    redirect_uri = Column(String(512), nullable=False)
    scopes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<IntegrationConfiguration {self.tenant_id}:{self.provider}>"


class IntegrationToken(Base):
    """One row per (tenant, provider); token columns hold ciphertext."""

    __tablename__ = "integration_tokens"
    __table_args__ = (
        UniqueConstraint("tenant_id", "provider", name="uq_integration_token_tenant_provider"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(128), nullable=False, index=True)
    provider = Column(String(32), nullable=False)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    token_type = Column(String(32), nullable=False, default="bearer")
    expires_at = Column(DateTime(timezone=True), nullable=True)  # NULL = non-expiring
    scopes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<IntegrationToken {self.tenant_id}:{self.provider} expires_at={self.expires_at}>"
