"""Application configuration using Pydantic Settings."""

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageProvider(str, Enum):
    SUPABASE = "supabase"
    GCS = "gcs"
    S3 = "s3"


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Local draft store
    draft_store_url: str = "sqlite+aiosqlite:///./onboarding_drafts.db"

    # Auto-save
    autosave_delay_ms: int = 2000

    # Photos
    photo_bucket: str = "property-images"
    signed_url_ttl_seconds: int = 3600

    # Storage
    storage_provider: StorageProvider = StorageProvider.SUPABASE

    # Supabase Config
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None

    # GCS Config
    gcs_project_id: Optional[str] = None

    # S3 Config
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: Optional[str] = "us-east-1"

    # Remote property service
    property_api_url: str = "http://localhost:54321/rest/v1"
    property_api_key: Optional[str] = None
    property_api_timeout_seconds: float = 10.0

    # Retention
    max_drafts_per_user: int = 10
    draft_retention_days: int = 30
    pending_asset_ttl_hours: int = 24

    @property
    def autosave_delay_seconds(self) -> float:
        return self.autosave_delay_ms / 1000.0

    @property
    def supabase_storage_url(self) -> str:
        """Storage API root for the Supabase provider."""
        if not self.supabase_url:
            raise ValueError("SUPABASE_URL required when STORAGE_PROVIDER=supabase")
        return f"{self.supabase_url.rstrip('/')}/storage/v1"


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
