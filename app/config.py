"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="CineCatalog", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./cinecatalog.db", alias="DATABASE_URL"
    )

    supabase_url: HttpUrl | None = Field(default=None, alias="SUPABASE_URL")
    supabase_service_role_key: str | None = Field(
        default=None, alias="SUPABASE_SERVICE_ROLE_KEY"
    )
    slider_bucket: str = Field(default="make-7c0425fe-slider", alias="SLIDER_BUCKET")
    signed_url_ttl_seconds: int = Field(
        default=31_536_000, alias="SIGNED_URL_TTL_SECONDS", ge=60
    )

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_language: str = Field(default="pt-BR", alias="TMDB_LANGUAGE")

    super_admin_email: str | None = Field(default=None, alias="SUPER_ADMIN_EMAIL")
    home_category_limit: int = Field(
        default=10, alias="HOME_CATEGORY_LIMIT", ge=1, le=100
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("super_admin_email", "tmdb_api_key", "supabase_service_role_key", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @property
    def supabase_base_url(self) -> str | None:
        """Return the Supabase project URL without a trailing slash."""

        if self.supabase_url is None:
            return None
        return str(self.supabase_url).rstrip("/")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", populate_by_name=True
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
