"""
Pending-Asset Mailbox

The add-asset screen can be torn down and rebuilt independently of the
areas screen (a page reload re-runs the parent from scratch and drops
navigation callbacks). Results therefore travel through the local store:
the producer deposits one envelope per draft, the parent collects it on mount
and on every focus, and merging is idempotent on the asset id.

Inputs travel the same way through ``AddAssetParamsStore``.
"""

import json
import logging
from datetime import timedelta
from typing import Optional

from pydantic import ValidationError

from onboarding.core.config import get_settings
from onboarding.core.errors import PersistenceError
from onboarding.schemas.base import utcnow
from onboarding.schemas.property import (
    AddAssetParams,
    InventoryItem,
    PendingAssetEnvelope,
    PropertyArea,
)
from onboarding.services.kv_store import KeyValueStore


def pending_asset_key(draft_id: str) -> str:
    return f"pendingAsset:{draft_id}"


def add_asset_params_key(area_id: str) -> str:
    return f"addAssetParams:{area_id}"


def merge_pending_asset(
    areas: list[PropertyArea],
    envelope: PendingAssetEnvelope,
) -> tuple[list[PropertyArea], bool]:
    """Apply an envelope to an area list.

    Returns the new list and whether the asset was added. An asset whose id
    already exists in the target area, or a target area that does not exist,
    leaves the list untouched.
    """
    merged: list[PropertyArea] = []
    applied = False
    for area in areas:
        if area.id == envelope.area_id and not area.has_asset(envelope.asset.id):
            asset = envelope.asset.model_copy(update={"area_id": area.id})
            area = area.model_copy(update={"assets": [*area.assets, asset]})
            applied = True
        merged.append(area)
    return merged, applied


class PendingAssetMailbox:
    """One envelope per draft, written once and deleted once consumed."""

    def __init__(
        self,
        kv: KeyValueStore,
        ttl_hours: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.kv = kv
        self.ttl = timedelta(hours=ttl_hours or get_settings().pending_asset_ttl_hours)
        self.logger = logger or logging.getLogger(__name__)

    async def deposit(self, draft_id: str, area_id: str, asset: InventoryItem) -> PendingAssetEnvelope:
        """Store the envelope; called by the producer right before it navigates back."""
        envelope = PendingAssetEnvelope(
            area_id=area_id,
            asset=asset.model_copy(update={"area_id": area_id}),
        )
        await self.kv.set(pending_asset_key(draft_id), envelope.to_json())
        self.logger.info(
            "[MAILBOX] Pending asset deposited",
            extra={"draft_id": draft_id, "area_id": area_id, "asset_id": asset.id},
        )
        return envelope

    async def collect(self, draft_id: str) -> Optional[PendingAssetEnvelope]:
        """Read the envelope without deleting it; None when empty.

        Store failures are logged and reported as empty so a collection
        attempt never breaks the caller's mount or focus handling.
        """
        key = pending_asset_key(draft_id)
        try:
            raw = await self.kv.get(key)
        except PersistenceError as e:
            self.logger.warning(f"[MAILBOX] Could not read pending asset for {draft_id}: {e}")
            return None

        if raw is None:
            return None

        try:
            envelope = PendingAssetEnvelope.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            self.logger.warning(f"[MAILBOX] Discarding malformed envelope for {draft_id}: {e}")
            await self.discard(draft_id)
            return None

        if utcnow() - envelope.created_at > self.ttl:
            self.logger.info(
                "[MAILBOX] Discarding expired envelope",
                extra={"draft_id": draft_id, "asset_id": envelope.asset.id},
            )
            await self.discard(draft_id)
            return None

        return envelope

    async def discard(self, draft_id: str) -> None:
        try:
            await self.kv.delete(pending_asset_key(draft_id))
        except PersistenceError as e:
            self.logger.warning(f"[MAILBOX] Could not delete envelope for {draft_id}: {e}")


class AddAssetParamsStore:
    """Parameter bag for the add-asset screen, keyed by area."""

    def __init__(self, kv: KeyValueStore, logger: Optional[logging.Logger] = None):
        self.kv = kv
        self.logger = logger or logging.getLogger(__name__)

    async def stash(self, params: AddAssetParams) -> None:
        await self.kv.set(add_asset_params_key(params.area_id), params.to_json())

    async def peek(self, area_id: str) -> Optional[AddAssetParams]:
        raw = await self.kv.get(add_asset_params_key(area_id))
        if raw is None:
            return None
        try:
            return AddAssetParams.model_validate_json(raw)
        except ValidationError as e:
            self.logger.warning(f"[MAILBOX] Discarding malformed add-asset params for {area_id}: {e}")
            await self.kv.delete(add_asset_params_key(area_id))
            return None

    async def take(self, area_id: str) -> Optional[AddAssetParams]:
        """Read and delete the parameters."""
        params = await self.peek(area_id)
        if params is not None:
            await self.kv.delete(add_asset_params_key(area_id))
        return params
