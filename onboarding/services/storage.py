"""
Signed display URLs for area photos.

Photo rows store object paths; what a screen shows is a short-lived read URL
issued by whichever object store the deployment uses (Supabase Storage, GCS
or S3). Providers only sign; ``StorageService`` decides what needs signing.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Optional
from urllib.parse import quote

import httpx

from onboarding.core.config import Settings, StorageProvider, get_settings

logger = logging.getLogger(__name__)


class SigningProvider(ABC):
    """Signs read access to one object for a limited time."""

    @abstractmethod
    async def sign_read_url(self, bucket: str, path: str, expires_in: int) -> Optional[str]:
        """Return a URL valid for ``expires_in`` seconds, or None if none was issued."""
        pass


class SupabaseSigningProvider(SigningProvider):
    """Supabase Storage ``object/sign`` endpoint."""

    def __init__(
        self,
        storage_url: str,
        service_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.storage_url = storage_url.rstrip("/")
        self.service_key = service_key
        self._client = client
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        if not self.service_key:
            return {}
        return {"Authorization": f"Bearer {self.service_key}", "apikey": self.service_key}

    async def _post(self, url: str, body: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=body, headers=self._headers(), timeout=self.timeout)
        async with httpx.AsyncClient() as client:
            return await client.post(url, json=body, headers=self._headers(), timeout=self.timeout)

    async def sign_read_url(self, bucket: str, path: str, expires_in: int) -> Optional[str]:
        response = await self._post(
            f"{self.storage_url}/object/sign/{bucket}/{quote(path)}",
            {"expiresIn": expires_in},
        )
        if response.status_code != 200:
            logger.warning(f"[STORAGE] Signing refused for {bucket}/{path}: HTTP {response.status_code}")
            return None

        body = response.json()
        signed = body.get("signedURL") or body.get("signedUrl")
        if not signed:
            return None
        # Older deployments return a path relative to the storage root
        return signed if signed.startswith("http") else f"{self.storage_url}{signed}"


class GCSSigningProvider(SigningProvider):
    """V4 signed GET URLs from Google Cloud Storage."""

    def __init__(self, project_id: Optional[str] = None, client: Any = None):
        self.project_id = project_id
        self._gcs = client

    def _bucket(self, name: str):
        if self._gcs is None:
            from google.cloud import storage
            self._gcs = storage.Client(project=self.project_id)
        return self._gcs.bucket(name)

    async def sign_read_url(self, bucket: str, path: str, expires_in: int) -> Optional[str]:
        blob = self._bucket(bucket).blob(path)
        # Signing with service-account keys is synchronous
        return await asyncio.to_thread(
            blob.generate_signed_url,
            version="v4",
            method="GET",
            expiration=timedelta(seconds=expires_in),
        )


class S3SigningProvider(SigningProvider):
    """Presigned ``get_object`` URLs from S3."""

    def __init__(self, region: str = "us-east-1", credentials: Optional[dict[str, str]] = None, client: Any = None):
        self.region = region
        self.credentials = credentials or {}
        self._s3 = client

    def _client(self):
        if self._s3 is None:
            import boto3
            self._s3 = boto3.client("s3", region_name=self.region, **self.credentials)
        return self._s3

    async def sign_read_url(self, bucket: str, path: str, expires_in: int) -> Optional[str]:
        return await asyncio.to_thread(
            self._client().generate_presigned_url,
            "get_object",
            Params={"Bucket": bucket, "Key": path},
            ExpiresIn=expires_in,
        )


class SignedUrlIssuer(ABC):
    """Turns a storage path into a display URL; None means "could not resolve"."""

    @abstractmethod
    async def get_display_url(self, bucket: str, path: str) -> Optional[str]:
        pass


class StorageService(SignedUrlIssuer):
    """Issues display URLs for stored photo paths."""

    def __init__(self, provider: SigningProvider, ttl_seconds: Optional[int] = None):
        self.provider = provider
        self.ttl_seconds = ttl_seconds or get_settings().signed_url_ttl_seconds

    async def get_display_url(self, bucket: str, path: str) -> Optional[str]:
        if not path:
            return None
        # Legacy rows stored public URLs instead of paths
        if path.startswith(("http://", "https://")):
            return path
        return await self.provider.sign_read_url(bucket, path, self.ttl_seconds)


def _provider_from_settings(settings: Settings) -> SigningProvider:
    if settings.storage_provider == StorageProvider.GCS:
        return GCSSigningProvider(project_id=settings.gcs_project_id)
    if settings.storage_provider == StorageProvider.S3:
        credentials = {}
        if settings.aws_access_key_id and settings.aws_secret_access_key:
            credentials = {
                "aws_access_key_id": settings.aws_access_key_id,
                "aws_secret_access_key": settings.aws_secret_access_key,
            }
        return S3SigningProvider(region=settings.aws_region or "us-east-1", credentials=credentials)
    return SupabaseSigningProvider(
        storage_url=settings.supabase_storage_url,
        service_key=settings.supabase_service_key,
    )


def get_storage_service(settings: Optional[Settings] = None) -> StorageService:
    """Storage service for the configured provider."""
    settings = settings or get_settings()
    return StorageService(_provider_from_settings(settings), ttl_seconds=settings.signed_url_ttl_seconds)
