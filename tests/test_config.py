"""Tests for settings loading."""

import pytest

from onboarding.core.config import Settings, StorageProvider


def test_defaults(monkeypatch):
    monkeypatch.delenv("AUTOSAVE_DELAY_MS", raising=False)
    settings = Settings(_env_file=None)

    assert settings.autosave_delay_seconds == 2.0
    assert settings.max_drafts_per_user == 10
    assert settings.draft_retention_days == 30
    assert settings.pending_asset_ttl_hours == 24


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("AUTOSAVE_DELAY_MS", "500")
    monkeypatch.setenv("STORAGE_PROVIDER", "s3")

    settings = Settings(_env_file=None)

    assert settings.autosave_delay_seconds == 0.5
    assert settings.storage_provider == StorageProvider.S3


def test_supabase_storage_url_requires_project_url(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)

    with pytest.raises(ValueError):
        Settings(_env_file=None).supabase_storage_url

    settings = Settings(_env_file=None, supabase_url="https://proj.supabase.co/")
    assert settings.supabase_storage_url == "https://proj.supabase.co/storage/v1"
