# app/models/marketplace.py
"""
Marketplace seller accounts and their OAuth credentials.

Accounts are created by onboarding and are read-only to the order
reconciliation pipeline. OAuth tokens are append-only: a refresh inserts a
new row and the most recently updated row is the one in use.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, String
from sqlalchemy.orm import relationship

from app.core.enums import MarketplaceEnvironment, MarketplaceProvider
from app.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MarketplaceAccount(Base):
    __tablename__ = "marketplace_accounts"

    id = Column(Integer, primary_key=True)
    provider = Column(String, nullable=False, default=MarketplaceProvider.EBAY.value, index=True)
    environment = Column(String, nullable=False, default=MarketplaceEnvironment.PRODUCTION.value)
    name = Column(String)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    client_id = Column(String)
    client_secret = Column(String)
    default_currency = Column(String, default="EUR")
    created_at = Column(DateTime, nullable=False, default=utc_now)

    tokens = relationship("OAuthToken", back_populates="account")

    @property
    def is_sandbox(self) -> bool:
        return MarketplaceEnvironment.coerce(self.environment) is MarketplaceEnvironment.SANDBOX

    def __repr__(self):
        return f"<MarketplaceAccount id={self.id} provider={self.provider} env={self.environment}>"


class OAuthToken(Base):
    __tablename__ = "oauth_tokens"

    id = Column(Integer, primary_key=True)
    marketplace_account_id = Column(Integer, ForeignKey("marketplace_accounts.id"), nullable=False)
    provider = Column(String, nullable=False, default=MarketplaceProvider.EBAY.value)
    environment = Column(String, nullable=False, default=MarketplaceEnvironment.PRODUCTION.value)
    access_token = Column(String)
    refresh_token = Column(String)
    expires_in = Column(Integer)
    scopes = Column(JSON)  # list of scope URLs
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    account = relationship("MarketplaceAccount", back_populates="tokens")

    __table_args__ = (
        Index("ix_oauth_tokens_account_updated", "marketplace_account_id", "updated_at"),
    )

    @property
    def scope_string(self) -> str:
        if isinstance(self.scopes, (list, tuple)):
            return " ".join(str(s) for s in self.scopes if s)
        return ""
