"""
Area/Asset Reconciler

Decides what a screen's area list is right now. Four candidate sources can
legitimately disagree and are consulted in strict precedence:

1. Remote rows, when the screen was opened against a published property.
   Nothing else is consulted and the draft store is bypassed.
2. Areas passed through navigation. Durable photo paths the draft store has
   for the same area ids are merged in, once per distinct input.
3. The user's stored draft, found through the current-draft pointer when
   navigation parameters were lost (typically a page reload).
4. Defaults generated from bedroom/bathroom counts and property type.

Display URLs are always regenerated from photo paths, once per distinct set
of paths per area. Results of async work are dropped if the reconciler was
disposed or a newer pass started meanwhile.
"""

import asyncio
import logging
from typing import Optional

from pydantic import Field

from onboarding.core.errors import (
    AreaNotRemovableError,
    OnboardingError,
    PersistenceError,
    RemoteSaveError,
    RemoteServiceError,
)
from onboarding.models.enums import AreaSource, ReconcilerState
from onboarding.schemas.base import BaseSchema
from onboarding.schemas.property import (
    InventoryItem,
    PendingAssetEnvelope,
    PropertyArea,
    PropertyData,
    PropertyDraft,
)
from onboarding.services.area_generation import generate_default_areas
from onboarding.services.draft_session import DraftSession
from onboarding.services.draft_store import DraftStore
from onboarding.services.mailbox import PendingAssetMailbox, merge_pending_asset
from onboarding.services.photo_resolver import PhotoReferenceResolver, PhotoResolutionGuard
from onboarding.services.property_client import PropertyServiceInterface

AreaSignature = tuple[tuple[str, tuple[str, ...]], ...]


class ReconcileRequest(BaseSchema):
    """Everything a screen knows about its areas when it mounts."""

    owner_id: str
    draft_id: Optional[str] = None
    property_id: Optional[str] = None
    property_data: Optional[PropertyData] = None
    nav_areas: list[PropertyArea] = Field(default_factory=list)
    is_new_property: bool = True


class ReconcileResult(BaseSchema):
    areas: list[PropertyArea]
    source: AreaSource
    draft_id: Optional[str] = None


def area_signature(areas: list[PropertyArea]) -> AreaSignature:
    return tuple((area.id, tuple(area.photo_paths)) for area in areas)


def merge_photo_paths(nav_areas: list[PropertyArea], draft: Optional[PropertyDraft]) -> list[PropertyArea]:
    """Copy durable photo paths from the draft into navigation areas lacking them."""
    if draft is None:
        return list(nav_areas)

    stored_by_id = {area.id: area for area in draft.areas}
    merged = []
    for area in nav_areas:
        stored = stored_by_id.get(area.id)
        if not area.photo_paths and stored is not None and stored.photo_paths:
            area = area.model_copy(update={"photo_paths": list(stored.photo_paths)})
        merged.append(area)
    return merged


def _with_photo_paths(areas: list[PropertyArea], paths: dict[str, list[str]]) -> list[PropertyArea]:
    return [
        area.model_copy(update={"photo_paths": list(paths[area.id])})
        if not area.photo_paths and area.id in paths
        else area
        for area in areas
    ]


class AreaReconciler:
    """Canonical area list for one screen instance."""

    def __init__(
        self,
        draft_store: DraftStore,
        resolver: PhotoReferenceResolver,
        mailbox: PendingAssetMailbox,
        property_service: Optional[PropertyServiceInterface] = None,
        session: Optional[DraftSession] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.draft_store = draft_store
        self.resolver = resolver
        self.mailbox = mailbox
        self.property_service = property_service
        self.session = session
        self.logger = logger or logging.getLogger(__name__)

        self.state = ReconcilerState.IDLE
        self.areas: list[PropertyArea] = []
        self.source = AreaSource.EMPTY
        self.error: Optional[str] = None
        self.request: Optional[ReconcileRequest] = None

        self._draft_id: Optional[str] = None
        self._generation = 0
        self._merged_paths: dict[AreaSignature, dict[str, list[str]]] = {}
        self._photo_guards: dict[str, PhotoResolutionGuard] = {}
        # Per area: the storage path behind each entry of `photos`, or None
        self._photo_owners: dict[str, list[Optional[str]]] = {}
        # Published-mode assets shown locally but not yet accepted remotely,
        # mapped to the mailbox holding their envelope
        self._unconfirmed: dict[str, Optional[str]] = {}
        self._persisting: set[str] = set()

    # -------------------------------------------------------------------------
    # Mode and lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_remote(self) -> bool:
        return bool(self.request and self.request.property_id)

    @property
    def mailbox_id(self) -> Optional[str]:
        """Mailbox address: the draft id, or the property id for published properties."""
        if self.is_remote:
            return self.request.property_id
        return self._draft_id

    def _transition(self, state: ReconcilerState) -> None:
        if self.state is ReconcilerState.DISPOSED:
            return
        self.logger.debug(f"[RECONCILE] {self.state.value} -> {state.value}")
        self.state = state

    def _begin(self) -> int:
        self._generation += 1
        return self._generation

    def _is_stale(self, token: int) -> bool:
        return self.state is ReconcilerState.DISPOSED or token != self._generation

    def dispose(self) -> None:
        """Screen unmounted; results of pending work are discarded."""
        self._generation += 1
        self.state = ReconcilerState.DISPOSED

    async def on_mount(self, request: ReconcileRequest) -> Optional[ReconcileResult]:
        result = await self.reconcile(request)
        if result is not None:
            await self.apply_pending_asset()
        return result

    async def on_focus(self) -> None:
        """Regained focus: refresh remote rows and pick up a pending asset."""
        if self.is_remote:
            await self.refresh_remote()
        await self.apply_pending_asset()

    async def on_external_change(self) -> None:
        """The underlying data changed outside this screen."""
        if self.is_remote:
            await self.refresh_remote()
            return
        token = self._begin()
        areas = await self._resolve_photos(self.areas, token)
        if areas is not None:
            self._apply(areas, self.source)

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    async def reconcile(self, request: ReconcileRequest) -> Optional[ReconcileResult]:
        """Pick the canonical area list. Returns None if superseded or disposed."""
        if self.state is ReconcilerState.DISPOSED:
            return None
        self.request = request
        token = self._begin()

        if request.property_id:
            areas = await self._fetch_remote(request.property_id)
            if areas is None or self._is_stale(token):
                return None
            source = AreaSource.REMOTE
        else:
            draft = await self._load_draft(request)
            if self._is_stale(token):
                return None
            self._draft_id = draft.id if draft else request.draft_id
            if request.nav_areas:
                areas = self._merge_navigation(request.nav_areas, draft)
                source = AreaSource.NAVIGATION
            elif draft is not None and draft.areas:
                areas = list(draft.areas)
                source = AreaSource.DRAFT
            elif request.is_new_property and request.property_data is not None:
                areas = generate_default_areas(request.property_data)
                source = AreaSource.DEFAULTS
            else:
                areas = []
                source = AreaSource.EMPTY
            self._bind_session(draft, request)

        areas = await self._resolve_photos(areas, token)
        if areas is None:
            return None

        self._apply(areas, source)
        if source in (AreaSource.NAVIGATION, AreaSource.DEFAULTS):
            self._write_back()

        self.logger.info(
            "[RECONCILE] Areas reconciled",
            extra={"source": source.value, "area_count": len(areas), "draft_id": self._draft_id},
        )
        return ReconcileResult(areas=self.areas, source=source, draft_id=self._draft_id)

    async def _fetch_remote(self, property_id: str) -> Optional[list[PropertyArea]]:
        if self.property_service is None:
            raise OnboardingError("A property service is required for published properties")
        try:
            return await self.property_service.get_areas_with_assets(property_id)
        except RemoteServiceError as e:
            self.error = e.display_message
            self.logger.error(f"[RECONCILE] Remote fetch failed for {property_id}: {e}")
            return None

    async def _load_draft(self, request: ReconcileRequest) -> Optional[PropertyDraft]:
        if self.session is not None and self.session.draft is not None:
            if request.draft_id in (None, self.session.draft.id):
                return self.session.draft
        try:
            if request.draft_id:
                return await self.draft_store.load_draft(request.owner_id, request.draft_id)
            return await self.draft_store.load_current_draft(request.owner_id)
        except PersistenceError as e:
            self.error = str(e)
            self.logger.error(f"[RECONCILE] Draft read failed: {e}")
            return None

    def _merge_navigation(self, nav_areas: list[PropertyArea], draft: Optional[PropertyDraft]) -> list[PropertyArea]:
        signature = area_signature(nav_areas)
        if signature in self._merged_paths:
            return _with_photo_paths(nav_areas, self._merged_paths[signature])

        self._transition(ReconcilerState.MERGING)
        merged = merge_photo_paths(nav_areas, draft)
        paths = {area.id: list(area.photo_paths) for area in merged if area.photo_paths}
        # Feeding the merged list back in is a no-op
        self._merged_paths[signature] = paths
        self._merged_paths[area_signature(merged)] = paths
        return merged

    def _bind_session(self, draft: Optional[PropertyDraft], request: ReconcileRequest) -> None:
        if self.session is None or self.session.draft is not None:
            return
        if draft is not None:
            self.session.attach(draft)
        elif request.is_new_property:
            self.session.start_new(request.property_data)
        if self.session.draft is not None:
            self._draft_id = self.session.draft.id

    async def _resolve_photos(self, areas: list[PropertyArea], token: int) -> Optional[list[PropertyArea]]:
        """Rebuild display caches from photo paths; None if the result is stale."""
        targets = [area for area in areas if area.photo_paths]
        if not targets:
            self._forget_unbacked_photos(areas)
            return list(areas)

        self._transition(ReconcilerState.RESOLVING)
        guards = [self._photo_guards.setdefault(area.id, PhotoResolutionGuard(self.resolver)) for area in targets]
        resolved = await asyncio.gather(
            *(guard.resolve_pairs(area.photo_paths) for guard, area in zip(guards, targets))
        )
        if self._is_stale(token):
            self.logger.debug("[RECONCILE] Dropping stale photo resolution")
            return None

        pairs_by_area = {area.id: pairs for area, pairs in zip(targets, resolved)}
        self._forget_unbacked_photos(areas)
        for area_id, pairs in pairs_by_area.items():
            self._photo_owners[area_id] = [path for path, _ in pairs]
        return [
            area.model_copy(update={"photos": [url for _, url in pairs_by_area[area.id]]})
            if area.id in pairs_by_area
            else area
            for area in areas
        ]

    def _forget_unbacked_photos(self, areas: list[PropertyArea]) -> None:
        for area in areas:
            if not area.photo_paths:
                self._photo_owners.pop(area.id, None)

    def _apply(self, areas: list[PropertyArea], source: AreaSource) -> None:
        self.areas = areas
        self.source = source
        self._transition(ReconcilerState.READY)

    async def refresh_remote(self) -> bool:
        """Re-fetch canonical rows for a published property."""
        if not self.is_remote:
            return False
        token = self._begin()
        areas = await self._fetch_remote(self.request.property_id)
        if areas is None or self._is_stale(token):
            return False
        areas = await self._resolve_photos(areas, token)
        if areas is None:
            return False
        self._apply(areas, AreaSource.REMOTE)
        return True

    # -------------------------------------------------------------------------
    # Pending asset handoff
    # -------------------------------------------------------------------------

    async def apply_pending_asset(self) -> bool:
        """Collect and merge the mailbox envelope; safe to call repeatedly."""
        mailbox_id = self.mailbox_id
        if not mailbox_id or self.state is ReconcilerState.DISPOSED:
            return False

        envelope = await self.mailbox.collect(mailbox_id)
        if envelope is None or self.state is ReconcilerState.DISPOSED:
            return False

        area = self.find_area(envelope.area_id)
        if area is None:
            self.logger.warning(
                "[RECONCILE] Pending asset targets an unknown area",
                extra={"area_id": envelope.area_id, "asset_id": envelope.asset.id},
            )
            return False

        if area.has_asset(envelope.asset.id):
            if envelope.asset.id in self._unconfirmed:
                # Shown locally but never accepted remotely: try the save again
                asset = next(a for a in area.assets if a.id == envelope.asset.id)
                return await self._persist_remote_asset(asset)
            await self.mailbox.discard(mailbox_id)
            return False

        return await self._merge_envelope(mailbox_id, envelope)

    async def _merge_envelope(self, mailbox_id: str, envelope: PendingAssetEnvelope) -> bool:
        # The local merge lands before any await so a concurrent collect sees it
        self.areas, applied = merge_pending_asset(self.areas, envelope)
        if not applied:
            return False
        self.logger.info(
            "[RECONCILE] Pending asset merged",
            extra={"area_id": envelope.area_id, "asset_id": envelope.asset.id},
        )
        if self.is_remote:
            # The envelope stays in the mailbox until the service accepts the asset
            self._unconfirmed[envelope.asset.id] = mailbox_id
            return await self._persist_remote_asset(envelope.asset)
        await self.mailbox.discard(mailbox_id)
        self._write_back()
        return True

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def find_area(self, area_id: str) -> Optional[PropertyArea]:
        return next((area for area in self.areas if area.id == area_id), None)

    def selected_areas(self) -> list[PropertyArea]:
        return [area for area in self.areas if area.selected]

    def _replace_area(self, area_id: str, **changes) -> PropertyArea:
        for index, area in enumerate(self.areas):
            if area.id == area_id:
                updated = area.model_copy(update=changes)
                self.areas = [*self.areas[:index], updated, *self.areas[index + 1:]]
                return updated
        raise KeyError(area_id)

    def _write_back(self) -> None:
        if self.is_remote or self.session is None:
            return
        self.session.update_areas(self.areas)

    def _require_draft_mode(self) -> None:
        if self.is_remote:
            raise OnboardingError("Areas of a published property are edited through the property service")

    def toggle_area(self, area_id: str) -> bool:
        """Flip selection of an area; returns the new selection state."""
        self._require_draft_mode()
        area = self.find_area(area_id)
        if area is None:
            raise KeyError(area_id)
        updated = self._replace_area(area_id, selected=not area.selected)
        self._write_back()
        return updated.selected

    def add_area(self, area: PropertyArea) -> None:
        self._require_draft_mode()
        if self.find_area(area.id) is not None:
            raise ValueError(f"Area {area.id} already exists")
        self.areas = [*self.areas, area]
        self._write_back()

    def remove_area(self, area_id: str) -> None:
        self._require_draft_mode()
        area = self.find_area(area_id)
        if area is None:
            raise KeyError(area_id)
        if area.is_default:
            raise AreaNotRemovableError(area_id)
        self.areas = [a for a in self.areas if a.id != area_id]
        self._photo_guards.pop(area_id, None)
        self._photo_owners.pop(area_id, None)
        self._write_back()

    async def add_asset(self, area_id: str, asset: InventoryItem) -> bool:
        """Add an asset; published properties get an optimistic update then a re-fetch.

        Adding an asset the service has not accepted yet retries the remote save.
        """
        area = self.find_area(area_id)
        if area is None:
            raise KeyError(area_id)
        if area.has_asset(asset.id):
            if not self.is_remote or asset.id not in self._unconfirmed:
                return False
            shown = next(a for a in area.assets if a.id == asset.id)
            return await self._persist_remote_asset(shown)

        asset = asset.model_copy(update={"area_id": area_id})
        self._replace_area(area_id, assets=[*area.assets, asset])
        if self.is_remote:
            self._unconfirmed.setdefault(asset.id, None)
            return await self._persist_remote_asset(asset)
        self._write_back()
        return True

    async def _persist_remote_asset(self, asset: InventoryItem) -> bool:
        if asset.id in self._persisting:
            return False
        self._persisting.add(asset.id)
        try:
            await self.property_service.add_asset(self.request.property_id, asset)
        except RemoteSaveError as e:
            self.error = e.display_message
            self.logger.error(f"[RECONCILE] Remote asset add failed: {e}")
            return False
        finally:
            self._persisting.discard(asset.id)

        mailbox_id = self._unconfirmed.pop(asset.id, None)
        if mailbox_id:
            await self._discard_envelope_for(mailbox_id, asset.id)
        await self.refresh_remote()
        return True

    async def _discard_envelope_for(self, mailbox_id: str, asset_id: str) -> None:
        envelope = await self.mailbox.collect(mailbox_id)
        if envelope is not None and envelope.asset.id == asset_id:
            await self.mailbox.discard(mailbox_id)

    async def remove_asset(self, area_id: str, asset_id: str) -> bool:
        area = self.find_area(area_id)
        if area is None:
            raise KeyError(area_id)
        if not area.has_asset(asset_id):
            return False

        self._replace_area(area_id, assets=[a for a in area.assets if a.id != asset_id])
        if not self.is_remote:
            self._write_back()
            return True

        if asset_id in self._unconfirmed:
            # Never reached the service, so there is nothing to delete there
            mailbox_id = self._unconfirmed.pop(asset_id)
            if mailbox_id:
                await self._discard_envelope_for(mailbox_id, asset_id)
            return True

        try:
            await self.property_service.delete_asset(asset_id)
        except RemoteSaveError as e:
            self.error = e.display_message
            self.logger.error(f"[RECONCILE] Remote asset delete failed: {e}")
            return False
        await self.refresh_remote()
        return True

    def _owners_for(self, area: PropertyArea) -> list[Optional[str]]:
        owners = self._photo_owners.get(area.id)
        if owners is None or len(owners) != len(area.photos):
            if len(area.photos) == len(area.photo_paths):
                owners = list(area.photo_paths)
            else:
                owners = [None] * len(area.photos)
        return list(owners)

    async def add_photo(self, area_id: str, display_ref: str, path: Optional[str] = None) -> bool:
        """Add a photo; ``path`` is the storage path once the upload completed."""
        area = self.find_area(area_id)
        if area is None:
            raise KeyError(area_id)

        owners = [*self._owners_for(area), path or None]
        photo_paths = [*area.photo_paths, path] if path else list(area.photo_paths)
        self._replace_area(area_id, photos=[*area.photos, display_ref], photo_paths=photo_paths)
        self._photo_owners[area_id] = owners
        if not self.is_remote:
            self._write_back()
            return True

        if not path:
            self.logger.warning("[RECONCILE] Photo without storage path cannot be saved remotely", extra={"area_id": area_id})
            return False
        return await self._persist_remote_photos(area_id, photo_paths)

    async def remove_photo(self, area_id: str, index: int) -> bool:
        """Remove the photo at ``index`` along with the storage path behind it, if any.

        Photos and paths are not index-aligned: unresolvable paths have no photo
        and local photos have no path yet.
        """
        area = self.find_area(area_id)
        if area is None:
            raise KeyError(area_id)
        if not 0 <= index < len(area.photos):
            raise IndexError(index)

        owners = self._owners_for(area)
        owner = owners.pop(index)
        photos = [p for i, p in enumerate(area.photos) if i != index]
        photo_paths = list(area.photo_paths)
        if owner is not None and owner in photo_paths:
            photo_paths.remove(owner)
        self._replace_area(area_id, photos=photos, photo_paths=photo_paths)
        self._photo_owners[area_id] = owners
        if not self.is_remote:
            self._write_back()
            return True
        if owner is None:
            return True
        return await self._persist_remote_photos(area_id, photo_paths)

    async def _persist_remote_photos(self, area_id: str, photo_paths: list[str]) -> bool:
        try:
            await self.property_service.update_area_photos(area_id, photo_paths)
        except RemoteSaveError as e:
            self.error = e.display_message
            self.logger.error(f"[RECONCILE] Remote photo update failed: {e}")
            return False
        return True

    def clear_error(self) -> None:
        self.error = None
