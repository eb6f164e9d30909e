"""Settings management."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment or .env."""

    DATABASE_URL: str = "sqlite:///./lemonsqueezy.db"
    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"

    # Caller tokens (HS256, `sub` = user id)
    JWT_SECRET: str = ""

    # LemonSqueezy
    LEMONSQUEEZY_API_URL: str = "https://api.lemonsqueezy.com"
    LEMONSQUEEZY_API_KEY: str = ""
    LEMONSQUEEZY_WEBHOOK_SECRET: str = ""
    LEMONSQUEEZY_STORE_ID: str = ""
    # Variants carry no currency of their own; it is a store-level setting
    LEMONSQUEEZY_CURRENCY: str = "USD"
    LEMONSQUEEZY_CHECKOUT_BUTTON_COLOR: str = "#7047EB"
    LEMONSQUEEZY_CHECKOUT_PREVIEW: bool = True
    LEMONSQUEEZY_TIMEOUT: float = 30.0
    LEMONSQUEEZY_SYNC_TIMEOUT: float = 120.0
    LEMONSQUEEZY_PAGE_SIZE: int = 100

    # Observability
    SENTRY_DSN: Optional[str] = None
    ENVIRONMENT: str = "development"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()  # type: ignore[call-arg]
