"""Configuration management for the target ledger service."""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = Field(default="Target Ledger")
    version: str = Field(default="0.1.0")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")

    database_url: str = Field(default="postgresql+psycopg://ledger:ledger@db:5432/ledger")

    root_owner_id: int = Field(default=1, description="Owner id of the organisation-wide roll-up target")

    kafka_bootstrap_servers: str = Field(default="kafka:9092")
    ledger_events_topic: str = Field(default="ledger-events")
    enable_event_publishing: bool = Field(default=True)

    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=True)
    otel_exporter_endpoint: str | None = Field(default=None)

    reconciliation_interval_seconds: int = Field(default=900)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
