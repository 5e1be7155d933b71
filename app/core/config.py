# app/core/config.py - Consolidated

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

DEFAULT_FULFILLMENT_SCOPE = "https://api.ebay.com/oauth/api_scope/sell.fulfillment.readonly"


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = ""

    # eBay orders reconciliation
    EBAY_STOCK_CHANNEL_ID: str = "ebay"       # Stock bucket that receives eBay sales
    EBAY_ORDERS_WINDOW_MINUTES: int = 120     # Trailing lastmodifieddate window
    EBAY_ORDERS_PAGE_LIMIT: int = 100
    EBAY_ORDERS_MAX_CONCURRENT_ACCOUNTS: int = 1
    EBAY_ORDERS_DEFAULT_SCOPES: str = DEFAULT_FULFILLMENT_SCOPE
    EBAY_HTTP_TIMEOUT_SECONDS: float = 30.0

    # Scheduler
    EBAY_ORDERS_SYNC_ENABLED: bool = False
    EBAY_ORDERS_SYNC_INTERVAL_MINUTES: int = 15

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists('.env') else None,
        case_sensitive=True,
        extra="ignore",
    )


@dataclass(frozen=True)
class ReconciliationConfig:
    """Explicit configuration handed to the order reconciliation pipeline."""
    provider: str = "ebay"
    channel_id: str = "ebay"
    window_minutes: int = 120
    page_limit: int = 100
    max_concurrent_accounts: int = 1
    default_scopes: str = DEFAULT_FULFILLMENT_SCOPE

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ReconciliationConfig":
        settings = settings or get_settings()
        return cls(
            channel_id=settings.EBAY_STOCK_CHANNEL_ID,
            window_minutes=settings.EBAY_ORDERS_WINDOW_MINUTES,
            page_limit=settings.EBAY_ORDERS_PAGE_LIMIT,
            max_concurrent_accounts=max(1, settings.EBAY_ORDERS_MAX_CONCURRENT_ACCOUNTS),
            default_scopes=settings.EBAY_ORDERS_DEFAULT_SCOPES,
        )


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()

def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
