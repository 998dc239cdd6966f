"""
Tests for the Draft Publisher

Tests covering:
1. Publishing selected areas and re-keying to remote ids
2. Leaving the draft intact on remote failure
3. Name-based re-keying fallback
"""

from unittest.mock import AsyncMock

import pytest

from onboarding.core.errors import RemoteSaveError, RemoteServiceError
from onboarding.schemas.property import PropertyData
from onboarding.services.draft_store import DraftStore
from onboarding.services.publisher import DraftPublisher, rekey_areas

from tests.conftest import OWNER_ID, make_area, make_asset


@pytest.fixture
def publisher(draft_store, property_service):
    return DraftPublisher(draft_store, property_service)


@pytest.fixture
async def draft(draft_store):
    draft = DraftStore.create_draft(OWNER_ID, PropertyData(name="Maple House"))
    draft.current_step = 3
    draft.areas = [
        make_area("kitchen", "Kitchen", photo_paths=["p/k.jpg"], assets=[make_asset("asset-1", "kitchen")]),
        make_area("bedroom1", "Bedroom", is_default=True),
        make_area("garage", "Garage", selected=False),
    ]
    await draft_store.save_draft(draft)
    await draft_store.set_current_pointer(OWNER_ID, draft.id, 3)
    return draft


class TestPublish:
    """Tests for DraftPublisher.publish."""

    async def test_publish_rekeys_selected_areas(self, publisher, draft, draft_store, property_service):
        result = await publisher.publish(draft)

        assert set(result.area_id_map) == {"kitchen", "bedroom1"}
        assert {a.id for a in result.areas} == set(result.area_id_map.values())
        kitchen = next(a for a in result.areas if a.id == result.area_id_map["kitchen"])
        assert kitchen.photo_paths == ["p/k.jpg"]
        assert len(kitchen.assets) == 1
        assert property_service.calls[0] == ("create_property", OWNER_ID)

        assert await draft_store.load_draft(OWNER_ID, draft.id) is None
        assert await draft_store.get_current_pointer(OWNER_ID) is None

    async def test_existing_property_is_not_recreated(self, publisher, draft, property_service):
        property_service.areas["prop-1"] = []

        result = await publisher.publish(draft, property_id="prop-1")

        assert result.property_id == "prop-1"
        assert not any(call[0] == "create_property" for call in property_service.calls)

    async def test_failure_leaves_draft_intact(self, publisher, draft, draft_store, property_service):
        property_service.fail_writes = True

        with pytest.raises(RemoteSaveError):
            await publisher.publish(draft)

        assert await draft_store.load_draft(OWNER_ID, draft.id) is not None
        assert (await draft_store.get_current_pointer(OWNER_ID)).draft_id == draft.id

    async def test_read_failure_is_reported_as_save_error(self, publisher, draft, draft_store, property_service):
        property_service.get_areas_with_assets = AsyncMock(side_effect=RemoteServiceError("timeout", status_code=504))

        with pytest.raises(RemoteSaveError) as exc_info:
            await publisher.publish(draft)

        assert exc_info.value.status_code == 504
        assert await draft_store.load_draft(OWNER_ID, draft.id) is not None


class TestRekeyAreas:
    """Tests for mapping draft ids to remote ids."""

    def test_duplicate_names_are_claimed_in_order(self):
        draft_areas = [make_area("kitchen", "Kitchen"), make_area("bath1", "Bathroom"), make_area("bath2", "Bathroom")]
        remote_areas = [make_area("r1", "Kitchen"), make_area("r2", "Bathroom"), make_area("r3", "Bathroom")]

        assert rekey_areas(draft_areas, remote_areas) == {"kitchen": "r1", "bath1": "r2", "bath2": "r3"}

    def test_confirmed_mapping_wins_over_names(self):
        draft_areas = [make_area("kitchen", "Kitchen")]
        remote_areas = [make_area("r1", "Kitchen"), make_area("r2", "Renamed Kitchen")]

        assert rekey_areas(draft_areas, remote_areas, {"kitchen": "r2"}) == {"kitchen": "r2"}

    def test_unconfirmed_mapping_falls_back_to_name(self):
        draft_areas = [make_area("kitchen", "Kitchen")]
        remote_areas = [make_area("r1", "Kitchen")]

        assert rekey_areas(draft_areas, remote_areas, {"kitchen": "gone"}) == {"kitchen": "r1"}

    def test_missing_remote_area_is_left_out(self):
        assert rekey_areas([make_area("attic", "Attic")], [make_area("r1", "Kitchen")]) == {}
