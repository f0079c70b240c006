from __future__ import annotations

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    log_level: str = "INFO"
    base_url: str = "http://localhost:8000"
    secret_key: str = "change-me"

    database_url: str = "sqlite:///./receiptflow.db"
    redis_url: str = "redis://localhost:6379/0"

    default_currency: str = "USD"
    amount_ceiling: Decimal = Decimal("10000")
    low_confidence_threshold: float = 0.5
    backlog_limit: int = 50
    webhook_secret: str | None = None

    document_intelligence_endpoint: str | None = None
    document_intelligence_key: str | None = None
    document_intelligence_model: str = "prebuilt-receipt"
    document_intelligence_api_version: str = "2023-07-31"
    document_intelligence_timeout_seconds: float = 30.0
    document_intelligence_poll_interval_seconds: float = 1.0
    document_intelligence_max_polls: int = 60

    text_analytics_endpoint: str | None = None
    text_analytics_key: str | None = None
    text_analytics_timeout_seconds: float = 10.0

    processing_stale_minutes: int = 30


settings = Settings()
