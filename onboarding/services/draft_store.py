"""
Draft Store - Local Persistence of Property Drafts

Stores full draft snapshots and a per-user "current draft" pointer in the
local key-value store. Writes are whole-snapshot overwrites: the last write
wins and nothing is merged field by field.

Key layout:
    draft:<owner_id>:current      -> {"draftId": ..., "step": ...}
    draft:<owner_id>:<draft_id>   -> PropertyDraft snapshot
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import ValidationError

from onboarding.core.config import get_settings
from onboarding.core.errors import PersistenceError
from onboarding.schemas.base import utcnow
from onboarding.schemas.property import (
    DRAFT_SCHEMA_VERSION,
    DraftPointer,
    PropertyData,
    PropertyDraft,
)
from onboarding.services.kv_store import KeyValueStore

POINTER_SUFFIX = "current"


def draft_key(owner_id: str, draft_id: str) -> str:
    return f"draft:{owner_id}:{draft_id}"


def pointer_key(owner_id: str) -> str:
    return f"draft:{owner_id}:{POINTER_SUFFIX}"


class DraftStore:
    """Draft snapshots and resumption pointers for each user."""

    def __init__(
        self,
        kv: KeyValueStore,
        max_drafts_per_user: Optional[int] = None,
        retention_days: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        settings = get_settings()
        self.kv = kv
        self.max_drafts_per_user = max_drafts_per_user or settings.max_drafts_per_user
        self.retention = timedelta(days=retention_days or settings.draft_retention_days)
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def create_draft(owner_id: str, property_data: Optional[PropertyData] = None) -> PropertyDraft:
        """Start a new draft at the attributes step. Nothing is written."""
        return PropertyDraft(
            owner_id=owner_id,
            current_step=1,
            property_data=property_data or PropertyData(),
        )

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    async def load_draft(self, owner_id: str, draft_id: str) -> Optional[PropertyDraft]:
        """Load a draft snapshot, or None if there is none for this user."""
        if not owner_id or not draft_id:
            return None

        key = draft_key(owner_id, draft_id)
        raw = await self.kv.get(key)
        if raw is None:
            return None

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Draft {draft_id} is not valid JSON", key=key) from e
        if not isinstance(payload, dict):
            raise PersistenceError(f"Draft {draft_id} is not a JSON object", key=key)

        if payload.get("ownerId") != owner_id:
            self.logger.warning(
                "[DRAFTS] Draft access denied: owner mismatch",
                extra={"draft_id": draft_id, "owner_id": owner_id},
            )
            return None

        try:
            draft = PropertyDraft.model_validate(payload)
        except ValidationError as e:
            raise PersistenceError(f"Draft {draft_id} could not be decoded", key=key) from e

        if payload.get("version") != DRAFT_SCHEMA_VERSION:
            # Older snapshots only lack fields; validation filled the defaults
            self.logger.info(
                f"[DRAFTS] Migrating draft {draft_id} from version {payload.get('version')}",
            )
            draft.version = DRAFT_SCHEMA_VERSION
            await self.kv.set(key, draft.to_json())

        return draft

    async def save_draft(self, draft: PropertyDraft) -> PropertyDraft:
        """Overwrite the stored snapshot and return the stamped copy that was written."""
        stored = draft.model_copy(deep=True)
        stored.updated_at = utcnow()
        stored.version = DRAFT_SCHEMA_VERSION

        try:
            payload = stored.to_json()
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Draft {draft.id} could not be serialized") from e

        await self.kv.set(draft_key(draft.owner_id, draft.id), payload)
        self.logger.debug(
            "[DRAFTS] Draft saved",
            extra={"draft_id": draft.id, "step": draft.current_step, "area_count": len(draft.areas)},
        )

        await self._enforce_draft_limit(draft.owner_id)
        return stored

    async def delete_draft(self, owner_id: str, draft_id: str) -> None:
        """Delete a draft, and the pointer if it targets that draft."""
        await self.kv.delete(draft_key(owner_id, draft_id))
        pointer = await self.get_current_pointer(owner_id)
        if pointer and pointer.draft_id == draft_id:
            await self.clear_current_pointer(owner_id)

    async def list_drafts(self, owner_id: str) -> list[PropertyDraft]:
        """All readable drafts for a user, newest first."""
        drafts: list[PropertyDraft] = []
        for key in await self.kv.keys(f"draft:{owner_id}:"):
            draft_id = key.rsplit(":", 1)[-1]
            if draft_id == POINTER_SUFFIX:
                continue
            try:
                draft = await self.load_draft(owner_id, draft_id)
            except PersistenceError as e:
                self.logger.warning(f"[DRAFTS] Skipping unreadable draft {draft_id}: {e}")
                continue
            if draft:
                drafts.append(draft)

        return sorted(drafts, key=lambda d: d.updated_at, reverse=True)

    # -------------------------------------------------------------------------
    # Current-draft pointer
    # -------------------------------------------------------------------------

    async def set_current_pointer(self, owner_id: str, draft_id: str, step: int) -> None:
        pointer = DraftPointer(draft_id=draft_id, step=step)
        await self.kv.set(pointer_key(owner_id), pointer.to_json())

    async def get_current_pointer(self, owner_id: str) -> Optional[DraftPointer]:
        raw = await self.kv.get(pointer_key(owner_id))
        if raw is None:
            return None
        try:
            return DraftPointer.model_validate_json(raw)
        except ValidationError as e:
            raise PersistenceError("Current draft pointer could not be decoded", key=pointer_key(owner_id)) from e

    async def clear_current_pointer(self, owner_id: str) -> None:
        await self.kv.delete(pointer_key(owner_id))

    async def load_current_draft(self, owner_id: str) -> Optional[PropertyDraft]:
        """Follow the pointer to the draft it names."""
        pointer = await self.get_current_pointer(owner_id)
        if pointer is None:
            return None
        return await self.load_draft(owner_id, pointer.draft_id)

    # -------------------------------------------------------------------------
    # Retention
    # -------------------------------------------------------------------------

    async def prune_stale_drafts(self, owner_id: str, now: Optional[datetime] = None) -> list[str]:
        """Delete drafts untouched for longer than the retention window."""
        cutoff = (now or utcnow()) - self.retention
        removed: list[str] = []
        for draft in await self.list_drafts(owner_id):
            if draft.updated_at < cutoff:
                await self.delete_draft(owner_id, draft.id)
                removed.append(draft.id)

        if removed:
            self.logger.info(f"[DRAFTS] Pruned {len(removed)} stale drafts", extra={"owner_id": owner_id})
        return removed

    async def _enforce_draft_limit(self, owner_id: str) -> None:
        try:
            drafts = await self.list_drafts(owner_id)
            for draft in drafts[self.max_drafts_per_user:]:
                await self.delete_draft(owner_id, draft.id)
                self.logger.info(f"[DRAFTS] Removed old draft {draft.id} over per-user limit")
        except PersistenceError as e:
            # The save itself succeeded; cleanup runs again on the next save
            self.logger.warning(f"[DRAFTS] Draft cleanup failed: {e}")
