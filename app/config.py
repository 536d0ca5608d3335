"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="SteamLens", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    steam_api_key: str | None = Field(default=None, alias="STEAM_API_KEY")
    steam_api_url: HttpUrl = Field(
        default="https://api.steampowered.com", alias="STEAM_API_URL"
    )
    steam_store_url: HttpUrl = Field(
        default="https://store.steampowered.com/api", alias="STEAM_STORE_URL"
    )
    store_country_code: str | None = Field(default=None, alias="STORE_COUNTRY_CODE")
    store_language: str | None = Field(default=None, alias="STORE_LANGUAGE")

    fetch_max_attempts: int = Field(
        default=3, alias="FETCH_MAX_ATTEMPTS", ge=1, le=10
    )
    fetch_base_delay: float = Field(
        default=1.0, alias="FETCH_BASE_DELAY", ge=0, le=30
    )
    enrichment_concurrency: int = Field(
        default=8, alias="ENRICHMENT_CONCURRENCY", ge=1, le=64
    )
    aggregate_timeout_seconds: float | None = Field(
        default=None, alias="AGGREGATE_TIMEOUT", gt=0
    )
    http_timeout_seconds: float = Field(
        default=20.0, alias="HTTP_TIMEOUT", gt=0, le=120
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator(
        "steam_api_key",
        "store_country_code",
        "store_language",
        "aggregate_timeout_seconds",
        mode="before",
    )
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        """Treat blank environment values as unset."""

        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @property
    def steam_api_base(self) -> str:
        return str(self.steam_api_url).rstrip("/")

    @property
    def steam_store_base(self) -> str:
        return str(self.steam_store_url).rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
