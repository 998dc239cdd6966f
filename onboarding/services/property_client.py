"""
Remote Property Service Client

Reads and writes published properties, their areas and their assets through
the REST interface of the remote data store. Rows store durable photo paths
only; display URLs are produced on the client by the photo resolver.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from onboarding.core.config import get_settings
from onboarding.core.errors import RemoteSaveError, RemoteServiceError
from onboarding.models.enums import AreaType, AssetCondition, AssetType
from onboarding.schemas.property import InventoryItem, PropertyArea, PropertyData


class PropertyServiceInterface(ABC):
    """Operations the reconciler and publisher consume from the remote service."""

    @abstractmethod
    async def create_property(self, owner_id: str, property_data: PropertyData) -> str:
        """Create the property row and return its id."""
        pass

    @abstractmethod
    async def get_areas_with_assets(self, property_id: str) -> list[PropertyArea]:
        """Fetch areas with nested assets; ``photos`` is left empty for resolution."""
        pass

    @abstractmethod
    async def update_area_photos(self, area_id: str, photo_paths: list[str]) -> None:
        pass

    @abstractmethod
    async def add_asset(self, property_id: str, asset: InventoryItem) -> InventoryItem:
        pass

    @abstractmethod
    async def delete_asset(self, asset_id: str) -> None:
        pass

    @abstractmethod
    async def save_areas_and_assets(self, property_id: str, areas: list[PropertyArea]) -> dict[str, str]:
        """Replace all areas of a property; returns draft area id -> stored area id."""
        pass


# =============================================================================
# Row conversion
# =============================================================================


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
        return True
    except ValueError:
        return False


def area_from_row(row: dict[str, Any], assets: Optional[list[InventoryItem]] = None) -> PropertyArea:
    return PropertyArea(
        id=str(row["id"]),
        name=row["name"],
        type=AreaType(row.get("area_type") or AreaType.OTHER.value),
        icon=row.get("icon_name") or "grid-outline",
        is_default=bool(row.get("is_default")),
        photos=[],
        photo_paths=list(row.get("photos") or []),
        inventory_complete=bool(row.get("inventory_complete")),
        condition=AssetCondition(row.get("condition") or AssetCondition.GOOD.value),
        assets=assets or [],
    )


def durable_photo_paths(area: PropertyArea) -> list[str]:
    """Paths worth persisting: ``photo_paths``, else photos that are not URLs or device handles."""
    if area.photo_paths:
        return list(area.photo_paths)
    return [
        p for p in area.photos
        if p and not p.startswith(("http://", "https://", "file://", "blob:", "content://"))
    ]


def area_to_row(area: PropertyArea, property_id: str, area_id: Optional[str] = None) -> dict[str, Any]:
    return {
        "id": area_id or area.id,
        "property_id": property_id,
        "name": area.name,
        "area_type": area.type.value,
        "icon_name": area.icon,
        "is_default": area.is_default,
        "photos": durable_photo_paths(area),
        "inventory_complete": area.inventory_complete,
        "condition": area.condition.value,
    }


def asset_from_row(row: dict[str, Any]) -> InventoryItem:
    return InventoryItem(
        id=str(row["id"]),
        area_id=str(row["area_id"]),
        name=row["name"],
        asset_type=AssetType(row.get("asset_type") or AssetType.OTHER.value),
        category=row.get("category") or "general",
        subcategory=row.get("subcategory"),
        brand=row.get("brand"),
        model=row.get("model"),
        serial_number=row.get("serial_number"),
        year=row.get("year"),
        condition=AssetCondition(row.get("condition") or AssetCondition.GOOD.value),
        installation_date=row.get("installation_date"),
        warranty_start_date=row.get("warranty_start_date"),
        warranty_end_date=row.get("warranty_end_date"),
        warranty_provider=row.get("warranty_provider"),
        purchase_price=row.get("purchase_price"),
        current_value=row.get("current_value"),
        photos=list(row.get("photos") or []),
        manual_url=row.get("manual_url"),
        notes=row.get("notes"),
        is_active=row.get("is_active", True) is not False,
    )


def asset_to_row(asset: InventoryItem, property_id: str, area_id: Optional[str] = None) -> dict[str, Any]:
    """Insert payload; the id is omitted so the store assigns one."""
    return {
        "area_id": area_id or asset.area_id,
        "property_id": property_id,
        "name": asset.name,
        "asset_type": asset.asset_type.value,
        "category": asset.category,
        "subcategory": asset.subcategory,
        "brand": asset.brand,
        "model": asset.model,
        "serial_number": asset.serial_number,
        "year": asset.year,
        "condition": asset.condition.value,
        "installation_date": asset.installation_date,
        "warranty_start_date": asset.warranty_start_date,
        "warranty_end_date": asset.warranty_end_date,
        "warranty_provider": asset.warranty_provider,
        "photos": asset.photos,
        "manual_url": asset.manual_url,
        "notes": asset.notes,
        "purchase_price": asset.purchase_price,
        "current_value": asset.current_value,
        "is_active": asset.is_active,
    }


def property_to_row(owner_id: str, data: PropertyData) -> dict[str, Any]:
    return {
        "landlord_id": owner_id,
        "name": data.name,
        "address_line1": data.address.line1,
        "address_line2": data.address.line2 or None,
        "city": data.address.city,
        "state": data.address.state,
        "zip_code": data.address.zip_code,
        "country": data.address.country,
        "property_type": data.type.value or None,
        "unit": data.unit or None,
        "bedrooms": data.bedrooms,
        "bathrooms": data.bathrooms,
    }


# =============================================================================
# HTTP client
# =============================================================================


class HttpPropertyService(PropertyServiceInterface):
    """REST client for the remote property store."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.property_api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.property_api_key
        self.timeout = timeout or settings.property_api_timeout_seconds
        self._client = client
        self.logger = logger or logging.getLogger(__name__)

    def _headers(self) -> dict[str, str]:
        headers = {"Prefer": "return=representation"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        return headers

    @staticmethod
    def _server_message(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return response.text or None
        if isinstance(body, dict):
            return body.get("message") or body.get("error") or body.get("detail") or body.get("hint")
        return None

    async def _request(
        self,
        method: str,
        path: str,
        write: bool,
        **kwargs: Any,
    ) -> Any:
        error_cls = RemoteSaveError if write else RemoteServiceError
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            if self._client is not None:
                response = await self._client.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except httpx.HTTPError as e:
            self.logger.error(f"[PROPERTY] {method} {path} failed: {e}")
            raise error_cls(f"Property service unreachable: {e}") from e

        if response.status_code >= 400:
            message = self._server_message(response)
            self.logger.warning(f"[PROPERTY] {method} {path} rejected: {response.status_code} {message}")
            raise error_cls(
                f"Property service returned {response.status_code}",
                status_code=response.status_code,
                server_message=message,
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _first_row(data: Any) -> dict[str, Any]:
        if isinstance(data, list):
            if not data:
                raise RemoteSaveError("Property service returned no row")
            return data[0]
        return data

    async def create_property(self, owner_id: str, property_data: PropertyData) -> str:
        data = await self._request("POST", "/properties", write=True, json=property_to_row(owner_id, property_data))
        property_id = str(self._first_row(data)["id"])
        self.logger.info(f"[PROPERTY] Property created: {property_id}")
        return property_id

    async def get_areas_with_assets(self, property_id: str) -> list[PropertyArea]:
        params = {"property_id": f"eq.{property_id}", "order": "created_at.asc"}
        area_rows = await self._request("GET", "/property_areas", write=False, params=params) or []
        if not area_rows:
            return []
        asset_rows = await self._request("GET", "/property_assets", write=False, params=params) or []

        assets_by_area: dict[str, list[InventoryItem]] = {}
        for row in asset_rows:
            asset = asset_from_row(row)
            assets_by_area.setdefault(asset.area_id, []).append(asset)

        areas = [area_from_row(row, assets_by_area.get(str(row["id"]), [])) for row in area_rows]
        self.logger.info(
            "[PROPERTY] Fetched areas with assets",
            extra={"property_id": property_id, "area_count": len(areas), "asset_count": len(asset_rows)},
        )
        return areas

    async def update_area_photos(self, area_id: str, photo_paths: list[str]) -> None:
        await self._request(
            "PATCH",
            "/property_areas",
            write=True,
            params={"id": f"eq.{area_id}"},
            json={"photos": photo_paths},
        )

    async def add_asset(self, property_id: str, asset: InventoryItem) -> InventoryItem:
        data = await self._request("POST", "/property_assets", write=True, json=asset_to_row(asset, property_id))
        return asset_from_row(self._first_row(data))

    async def delete_asset(self, asset_id: str) -> None:
        await self._request("DELETE", "/property_assets", write=True, params={"id": f"eq.{asset_id}"})

    async def save_areas_and_assets(self, property_id: str, areas: list[PropertyArea]) -> dict[str, str]:
        # Existing areas go first; assets cascade
        await self._request("DELETE", "/property_areas", write=True, params={"property_id": f"eq.{property_id}"})
        if not areas:
            self.logger.info(f"[PROPERTY] No areas to save for {property_id}")
            return {}

        id_map: dict[str, str] = {}
        area_rows = []
        for area in areas:
            stored_id = area.id if _is_uuid(area.id) else str(uuid.uuid4())
            id_map[area.id] = stored_id
            area_rows.append(area_to_row(area, property_id, stored_id))
        await self._request("POST", "/property_areas", write=True, json=area_rows)

        asset_rows = [
            asset_to_row(asset, property_id, id_map[area.id])
            for area in areas
            for asset in area.assets
        ]
        if asset_rows:
            await self._request("POST", "/property_assets", write=True, json=asset_rows)

        self.logger.info(
            "[PROPERTY] Saved areas and assets",
            extra={"property_id": property_id, "area_count": len(area_rows), "asset_count": len(asset_rows)},
        )
        return id_map
