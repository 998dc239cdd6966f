"""
Draft Publisher

Turns a finished draft into remote rows. The remote store assigns its own
area ids, so every caller that keeps working with the areas afterwards must
use the re-keyed ids returned here, never the draft-local ones.
"""

import logging
from typing import Optional

from onboarding.core.errors import PersistenceError, RemoteSaveError, RemoteServiceError
from onboarding.schemas.base import BaseSchema
from onboarding.schemas.property import PropertyArea, PropertyDraft
from onboarding.services.draft_store import DraftStore
from onboarding.services.property_client import PropertyServiceInterface, durable_photo_paths


class PublishResult(BaseSchema):
    property_id: str
    areas: list[PropertyArea]
    area_id_map: dict[str, str]


def rekey_areas(
    draft_areas: list[PropertyArea],
    remote_areas: list[PropertyArea],
    id_map: Optional[dict[str, str]] = None,
) -> dict[str, str]:
    """Map draft area ids to remote ids.

    An explicit mapping wins when the remote store confirms the id; otherwise
    areas are matched by name, in order, each remote area claimed once.
    """
    id_map = id_map or {}
    remote_ids = {area.id for area in remote_areas}
    claimed: set[str] = set()
    result: dict[str, str] = {}

    for area in draft_areas:
        mapped = id_map.get(area.id)
        if mapped in remote_ids and mapped not in claimed:
            result[area.id] = mapped
            claimed.add(mapped)

    for area in draft_areas:
        if area.id in result:
            continue
        match = next(
            (r for r in remote_areas if r.name == area.name and r.id not in claimed),
            None,
        )
        if match is not None:
            result[area.id] = match.id
            claimed.add(match.id)

    return result


class DraftPublisher:
    """Publishes drafts to the remote property service."""

    def __init__(
        self,
        draft_store: DraftStore,
        property_service: PropertyServiceInterface,
        logger: Optional[logging.Logger] = None,
    ):
        self.draft_store = draft_store
        self.property_service = property_service
        self.logger = logger or logging.getLogger(__name__)

    async def publish(self, draft: PropertyDraft, property_id: Optional[str] = None) -> PublishResult:
        """Create the property (unless ``property_id`` is given) and save its selected areas.

        Raises RemoteSaveError on any remote failure; the local draft is left
        untouched so the user can retry.
        """
        areas = [area for area in draft.areas if area.selected]
        for area in areas:
            if len(area.photos) > len(durable_photo_paths(area)):
                self.logger.warning(
                    "[PUBLISH] Area has photos that were never uploaded",
                    extra={"area_id": area.id, "area_name": area.name},
                )

        try:
            if property_id is None:
                property_id = await self.property_service.create_property(draft.owner_id, draft.property_data)
            else:
                self.logger.info(f"[PUBLISH] Property {property_id} already exists, skipping creation")
            saved_ids = await self.property_service.save_areas_and_assets(property_id, areas)
            remote_areas = await self.property_service.get_areas_with_assets(property_id)
        except RemoteSaveError:
            raise
        except RemoteServiceError as e:
            raise RemoteSaveError(str(e), status_code=e.status_code, server_message=e.server_message) from e

        area_id_map = rekey_areas(areas, remote_areas, saved_ids)
        unmatched = [area.name for area in areas if area.id not in area_id_map]
        if unmatched:
            self.logger.warning(f"[PUBLISH] Areas missing after publish: {unmatched}")

        try:
            await self.draft_store.delete_draft(draft.owner_id, draft.id)
        except PersistenceError as e:
            # Published rows supersede the draft; a leftover snapshot is pruned later
            self.logger.warning(f"[PUBLISH] Could not delete published draft {draft.id}: {e}")

        self.logger.info(
            "[PUBLISH] Draft published",
            extra={"draft_id": draft.id, "property_id": property_id, "area_count": len(remote_areas)},
        )
        return PublishResult(property_id=property_id, areas=remote_areas, area_id_map=area_id_map)
