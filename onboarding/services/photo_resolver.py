"""
Photo Reference Resolver

Converts durable storage paths into time-limited display URLs. Signed URLs
expire, so a display URL is never trusted across a reload: every fresh screen
instance resolves its paths again, exactly once per distinct set of paths.
"""

import asyncio
import logging
from typing import Optional, Sequence

from onboarding.core.config import get_settings
from onboarding.core.errors import ResolutionError
from onboarding.services.storage import SignedUrlIssuer


class PhotoReferenceResolver:
    """Resolves storage paths through the signed-URL issuer."""

    def __init__(
        self,
        issuer: SignedUrlIssuer,
        bucket: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.issuer = issuer
        self.bucket = bucket or get_settings().photo_bucket
        self.logger = logger or logging.getLogger(__name__)

    async def _resolve_one(self, path: str) -> str:
        try:
            url = await self.issuer.get_display_url(self.bucket, path)
        except Exception as e:
            raise ResolutionError(path, str(e)) from e
        if not url:
            raise ResolutionError(path)
        return url

    async def resolve_pairs(self, photo_paths: Sequence[str]) -> list[tuple[str, str]]:
        """Resolve paths in order as ``(path, url)``; unresolvable paths are left out."""
        paths = [p for p in photo_paths if p]
        if not paths:
            return []

        results = await asyncio.gather(
            *(self._resolve_one(path) for path in paths),
            return_exceptions=True,
        )

        pairs: list[tuple[str, str]] = []
        for path, result in zip(paths, results):
            if isinstance(result, ResolutionError):
                self.logger.warning(
                    "[PHOTOS] Dropping unresolvable photo",
                    extra={"path": result.path, "reason": result.reason},
                )
                continue
            if isinstance(result, BaseException):
                raise result
            pairs.append((path, result))

        self.logger.info(
            "[PHOTOS] Resolved photo URLs",
            extra={"path_count": len(paths), "url_count": len(pairs)},
        )
        return pairs

    async def resolve(self, photo_paths: Sequence[str]) -> list[str]:
        """Resolve paths in order; unresolvable paths are left out."""
        return [url for _, url in await self.resolve_pairs(photo_paths)]


class PhotoResolutionGuard:
    """One-shot-per-signature wrapper around the resolver for one screen instance.

    The guard asks "are these paths different from the ones I last
    resolved", not "have I resolved before", so photos added after the first
    pass trigger a new pass over the full list. Only the most recently
    requested signature is recorded; a slower, older pass cannot overwrite it.
    """

    def __init__(self, resolver: PhotoReferenceResolver):
        self.resolver = resolver
        self.passes = 0
        self._signature: Optional[tuple[str, ...]] = None
        self._pairs: list[tuple[str, str]] = []
        self._latest: Optional[tuple[str, ...]] = None
        self._inflight: Optional[tuple[tuple[str, ...], asyncio.Task]] = None

    @staticmethod
    def signature_of(photo_paths: Sequence[str]) -> tuple[str, ...]:
        return tuple(photo_paths)

    def needs_resolution(self, photo_paths: Sequence[str]) -> bool:
        return self.signature_of(photo_paths) != self._signature

    @property
    def last_result(self) -> list[str]:
        return [url for _, url in self._pairs]

    async def resolve_pairs(self, photo_paths: Sequence[str]) -> list[tuple[str, str]]:
        signature = self.signature_of(photo_paths)
        self._latest = signature
        if signature == self._signature:
            return list(self._pairs)

        if self._inflight and self._inflight[0] == signature:
            pairs = await asyncio.shield(self._inflight[1])
        else:
            self.passes += 1
            task = asyncio.ensure_future(self.resolver.resolve_pairs(signature))
            self._inflight = (signature, task)
            try:
                pairs = await task
            finally:
                if self._inflight and self._inflight[1] is task:
                    self._inflight = None

        if self._latest == signature:
            self._signature = signature
            self._pairs = pairs
        return list(pairs)

    async def resolve(self, photo_paths: Sequence[str]) -> list[str]:
        return [url for _, url in await self.resolve_pairs(photo_paths)]

    def reset(self) -> None:
        self._signature = None
        self._latest = None
        self._pairs = []
