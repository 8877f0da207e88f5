"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest

from app.config import Settings


def test_defaults_without_environment() -> None:
    settings = Settings(_env_file=None)

    assert settings.server_port == 3000
    assert settings.home_category_limit == 10
    assert settings.slider_bucket == "make-7c0425fe-slider"
    assert settings.signed_url_ttl_seconds == 31_536_000
    assert settings.tmdb_language == "pt-BR"
    assert settings.supabase_base_url is None


def test_blank_secrets_are_treated_as_missing() -> None:
    """Whitespace-only keys should not enable optional integrations."""

    settings = Settings(
        _env_file=None,
        TMDB_API_KEY="   ",
        SUPABASE_SERVICE_ROLE_KEY="",
        SUPER_ADMIN_EMAIL=" ",
    )

    assert settings.tmdb_api_key is None
    assert settings.supabase_service_role_key is None
    assert settings.super_admin_email is None


def test_supabase_base_url_strips_trailing_slash() -> None:
    settings = Settings(_env_file=None, SUPABASE_URL="https://project.supabase.co/")

    assert settings.supabase_base_url == "https://project.supabase.co"


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME_CATEGORY_LIMIT", "4")
    monkeypatch.setenv("SUPER_ADMIN_EMAIL", "owner@example.com")

    settings = Settings(_env_file=None)

    assert settings.home_category_limit == 4
    assert settings.super_admin_email == "owner@example.com"


def test_home_category_limit_must_be_positive() -> None:
    with pytest.raises(ValueError):
        Settings(_env_file=None, HOME_CATEGORY_LIMIT=0)
