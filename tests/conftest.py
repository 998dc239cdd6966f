"""Shared fixtures: in-memory store, counting URL issuer, fake property service."""

from __future__ import annotations

import uuid
from typing import Optional

import pytest

from onboarding.core.errors import PersistenceError, RemoteSaveError
from onboarding.models.enums import PropertyType
from onboarding.schemas.property import InventoryItem, PropertyArea, PropertyData
from onboarding.services.draft_store import DraftStore
from onboarding.services.kv_store import InMemoryKeyValueStore
from onboarding.services.mailbox import PendingAssetMailbox
from onboarding.services.photo_resolver import PhotoReferenceResolver
from onboarding.services.property_client import PropertyServiceInterface, durable_photo_paths
from onboarding.services.storage import SignedUrlIssuer

OWNER_ID = "user_123"


# =============================================================================
# Fakes
# =============================================================================


class CountingIssuer(SignedUrlIssuer):
    """Issues predictable signed URLs and records every request."""

    def __init__(self, unresolvable: tuple[str, ...] = (), raising: tuple[str, ...] = ()):
        self.calls: list[str] = []
        self.unresolvable = set(unresolvable)
        self.raising = set(raising)

    async def get_display_url(self, bucket: str, path: str) -> Optional[str]:
        self.calls.append(path)
        if path in self.raising:
            raise RuntimeError("storage unavailable")
        if path in self.unresolvable:
            return None
        return f"https://cdn.test/{bucket}/{path}?token=signed"


class FailingKeyValueStore(InMemoryKeyValueStore):
    """Store whose writes fail while ``failing`` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False
        self.writes = 0

    async def set(self, key: str, value: str) -> None:
        if self.failing:
            raise PersistenceError("disk full", key=key)
        self.writes += 1
        await super().set(key, value)


class FakePropertyService(PropertyServiceInterface):
    """In-memory remote store that reassigns ids like the real one."""

    def __init__(self):
        self.areas: dict[str, list[PropertyArea]] = {}
        self.calls: list[tuple] = []
        self.fail_writes = False

    def _check(self):
        if self.fail_writes:
            raise RemoteSaveError("rejected", status_code=403, server_message="Row level security violation")

    def _all_areas(self):
        for areas in self.areas.values():
            yield from areas

    async def create_property(self, owner_id: str, property_data: PropertyData) -> str:
        self.calls.append(("create_property", owner_id))
        self._check()
        property_id = f"prop-{uuid.uuid4().hex[:8]}"
        self.areas[property_id] = []
        return property_id

    async def get_areas_with_assets(self, property_id: str) -> list[PropertyArea]:
        self.calls.append(("get_areas_with_assets", property_id))
        return [area.model_copy(deep=True, update={"photos": []}) for area in self.areas.get(property_id, [])]

    async def update_area_photos(self, area_id: str, photo_paths: list[str]) -> None:
        self.calls.append(("update_area_photos", area_id, list(photo_paths)))
        self._check()
        for area in self._all_areas():
            if area.id == area_id:
                area.photo_paths = list(photo_paths)

    async def add_asset(self, property_id: str, asset: InventoryItem) -> InventoryItem:
        self.calls.append(("add_asset", property_id, asset.id))
        self._check()
        stored = asset.model_copy(update={"id": str(uuid.uuid4())})
        for area in self.areas[property_id]:
            if area.id == asset.area_id:
                area.assets = [*area.assets, stored]
        return stored

    async def delete_asset(self, asset_id: str) -> None:
        self.calls.append(("delete_asset", asset_id))
        self._check()
        for area in self._all_areas():
            area.assets = [a for a in area.assets if a.id != asset_id]

    async def save_areas_and_assets(self, property_id: str, areas: list[PropertyArea]) -> dict[str, str]:
        self.calls.append(("save_areas_and_assets", property_id, len(areas)))
        self._check()
        id_map = {}
        stored = []
        for area in areas:
            new_id = str(uuid.uuid4())
            id_map[area.id] = new_id
            stored.append(
                area.model_copy(
                    deep=True,
                    update={
                        "id": new_id,
                        "photos": [],
                        "photo_paths": durable_photo_paths(area),
                        "assets": [
                            a.model_copy(update={"id": str(uuid.uuid4()), "area_id": new_id})
                            for a in area.assets
                        ],
                    },
                )
            )
        self.areas[property_id] = stored
        return id_map


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def draft_store(kv):
    return DraftStore(kv, max_drafts_per_user=10, retention_days=30)


@pytest.fixture
def issuer():
    return CountingIssuer()


@pytest.fixture
def resolver(issuer):
    return PhotoReferenceResolver(issuer, bucket="property-images")


@pytest.fixture
def mailbox(kv):
    return PendingAssetMailbox(kv, ttl_hours=24)


@pytest.fixture
def property_service():
    return FakePropertyService()


@pytest.fixture
def house_data():
    return PropertyData(name="Maple House", type=PropertyType.HOUSE, bedrooms=3, bathrooms=2.5)


def make_area(area_id: str, name: Optional[str] = None, **fields) -> PropertyArea:
    return PropertyArea(id=area_id, name=name or area_id.title(), **fields)


def make_asset(asset_id: str, area_id: str, name: str = "Refrigerator") -> InventoryItem:
    return InventoryItem(id=asset_id, area_id=area_id, name=name)
