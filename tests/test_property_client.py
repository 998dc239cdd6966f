"""
Tests for the remote property service client

Tests covering:
1. Row conversion for areas and assets
2. Request shape for bulk saves
3. Error mapping (read vs. write, server messages, transport errors)
"""

import json

import httpx
import pytest

from onboarding.core.errors import RemoteSaveError, RemoteServiceError
from onboarding.models.enums import AreaType
from onboarding.schemas.property import PropertyData
from onboarding.services.property_client import HttpPropertyService, durable_photo_paths

from tests.conftest import OWNER_ID, make_area, make_asset

BASE_URL = "https://db.test/rest/v1"


def make_service(handler) -> tuple[HttpPropertyService, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpPropertyService(base_url=BASE_URL, api_key="anon-key", client=client), client


# =============================================================================
# Reads
# =============================================================================


class TestReads:
    """Tests for fetching areas with assets."""

    async def test_rows_become_areas_with_nested_assets(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.url.path, dict(request.url.params)))
            if request.url.path.endswith("/property_areas"):
                return httpx.Response(
                    200,
                    json=[
                        {"id": "a1", "name": "Kitchen", "area_type": "kitchen", "photos": ["props/1/k.jpg"]},
                        {"id": "a2", "name": "Garage", "area_type": None, "photos": None},
                    ],
                )
            return httpx.Response(200, json=[{"id": "s1", "area_id": "a1", "name": "Refrigerator"}])

        service, client = make_service(handler)
        async with client:
            areas = await service.get_areas_with_assets("prop-1")

        kitchen, garage = areas
        assert kitchen.type == AreaType.KITCHEN
        assert kitchen.photo_paths == ["props/1/k.jpg"]
        assert kitchen.photos == []
        assert [a.id for a in kitchen.assets] == ["s1"]
        assert garage.type == AreaType.OTHER
        assert garage.icon == "grid-outline"
        assert garage.assets == []
        assert seen[0] == ("/rest/v1/property_areas", {"property_id": "eq.prop-1", "order": "created_at.asc"})

    async def test_no_areas_skips_asset_query(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return httpx.Response(200, json=[])

        service, client = make_service(handler)
        async with client:
            assert await service.get_areas_with_assets("prop-1") == []

        assert calls == ["/rest/v1/property_areas"]

    async def test_read_failure_is_service_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"message": "internal error"})

        service, client = make_service(handler)
        async with client:
            with pytest.raises(RemoteServiceError) as exc_info:
                await service.get_areas_with_assets("prop-1")

        assert not isinstance(exc_info.value, RemoteSaveError)
        assert exc_info.value.status_code == 500


# =============================================================================
# Writes
# =============================================================================


class TestWrites:
    """Tests for property, area and asset writes."""

    async def test_create_property_returns_id(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            captured["auth"] = request.headers.get("authorization")
            return httpx.Response(201, json=[{"id": "prop-9"}])

        service, client = make_service(handler)
        async with client:
            property_id = await service.create_property(OWNER_ID, PropertyData(name="Maple House", bedrooms=3))

        assert property_id == "prop-9"
        assert captured["body"]["landlord_id"] == OWNER_ID
        assert captured["body"]["bedrooms"] == 3
        assert captured["auth"] == "Bearer anon-key"

    async def test_rejected_write_carries_server_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"message": "new row violates row-level security policy"})

        service, client = make_service(handler)
        async with client:
            with pytest.raises(RemoteSaveError) as exc_info:
                await service.delete_asset("s1")

        assert exc_info.value.status_code == 403
        assert exc_info.value.display_message == "new row violates row-level security policy"

    async def test_transport_failure_is_wrapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused")

        service, client = make_service(handler)
        async with client:
            with pytest.raises(RemoteSaveError):
                await service.update_area_photos("a1", ["p/1.jpg"])

    async def test_bulk_save_assigns_ids_and_stores_paths_only(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content) if request.content else None
            requests.append((request.method, request.url.path, body))
            if request.method == "DELETE":
                return httpx.Response(204)
            return httpx.Response(201, json=body)

        area = make_area(
            "kitchen",
            "Kitchen",
            photo_paths=["props/1/k.jpg"],
            photos=["https://cdn.test/props/1/k.jpg?token=abc"],
            assets=[make_asset("local-1", "kitchen")],
        )
        service, client = make_service(handler)
        async with client:
            id_map = await service.save_areas_and_assets("prop-1", [area])

        methods = [(method, path) for method, path, _ in requests]
        assert methods == [
            ("DELETE", "/rest/v1/property_areas"),
            ("POST", "/rest/v1/property_areas"),
            ("POST", "/rest/v1/property_assets"),
        ]
        area_rows = requests[1][2]
        asset_rows = requests[2][2]
        assert area_rows[0]["id"] == id_map["kitchen"] != "kitchen"
        assert area_rows[0]["photos"] == ["props/1/k.jpg"]
        assert asset_rows[0]["area_id"] == id_map["kitchen"]
        assert "id" not in asset_rows[0]


def test_durable_paths_skip_display_urls():
    area = make_area("kitchen", photos=["https://cdn.test/a.jpg?token=x", "blob:123", "props/1/b.jpg"])

    assert durable_photo_paths(area) == ["props/1/b.jpg"]
