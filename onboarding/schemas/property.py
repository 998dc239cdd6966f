"""Property draft, area and inventory schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from onboarding.models.enums import AreaType, AssetCondition, AssetType, DraftStatus, PropertyType
from onboarding.schemas.base import BaseSchema, utcnow

DRAFT_SCHEMA_VERSION = "1.0"
TOTAL_ONBOARDING_STEPS = 5
# Steps at or beyond this one need areas to be resumable
AREAS_STEP = 2


def new_draft_id() -> str:
    return f"draft_{uuid.uuid4().hex}"


class PropertyAddress(BaseSchema):
    """Multi-field street address."""

    line1: str = ""
    line2: Optional[str] = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "US"


class PropertyData(BaseSchema):
    """Partial property record collected during step 1."""

    name: str = ""
    address: PropertyAddress = Field(default_factory=PropertyAddress)
    type: PropertyType = PropertyType.UNSET
    unit: str = ""
    bedrooms: int = Field(1, ge=0)
    bathrooms: float = Field(1, ge=0)  # 2.5 = two full baths and a half bath
    photos: list[str] = Field(default_factory=list)


class InventoryItem(BaseSchema):
    """A documented asset within an area."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    area_id: str
    name: str
    asset_type: AssetType = AssetType.OTHER
    category: str = "general"
    subcategory: Optional[str] = None

    # Identification
    brand: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    year: Optional[int] = Field(None, ge=1800, le=2100)

    condition: AssetCondition = AssetCondition.GOOD
    installation_date: Optional[str] = None

    # Warranty
    warranty_start_date: Optional[str] = None
    warranty_end_date: Optional[str] = None
    warranty_provider: Optional[str] = None

    # Financial
    purchase_price: Optional[float] = Field(None, ge=0)
    current_value: Optional[float] = Field(None, ge=0)

    photos: list[str] = Field(default_factory=list)
    manual_url: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True


class PropertyArea(BaseSchema):
    """One room or zone of a property.

    ``photo_paths`` holds durable object-storage paths and is the source of
    truth. ``photos`` is a display cache (device URIs, blob handles or signed
    URLs) that is rebuilt from ``photo_paths`` whenever they are present.
    """

    id: str
    name: str
    type: AreaType = AreaType.OTHER
    icon: str = "home"
    is_default: bool = False
    selected: bool = True
    photos: list[str] = Field(default_factory=list)
    photo_paths: list[str] = Field(default_factory=list)
    inventory_complete: bool = False
    condition: AssetCondition = AssetCondition.GOOD
    assets: list[InventoryItem] = Field(default_factory=list)

    def has_asset(self, asset_id: str) -> bool:
        return any(asset.id == asset_id for asset in self.assets)


class PropertyDraft(BaseSchema):
    """Snapshot of a property under construction."""

    id: str = Field(default_factory=new_draft_id)
    owner_id: str
    current_step: int = Field(1, ge=0)
    property_data: PropertyData = Field(default_factory=PropertyData)
    areas: list[PropertyArea] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utcnow)
    version: str = DRAFT_SCHEMA_VERSION

    @field_validator("areas", mode="before")
    @classmethod
    def _none_areas(cls, v):
        return v or []

    @property
    def completion_percentage(self) -> int:
        return min(100, round(self.current_step / TOTAL_ONBOARDING_STEPS * 100))

    @property
    def status(self) -> DraftStatus:
        if self.completion_percentage >= 100:
            return DraftStatus.COMPLETED
        if self.current_step > 0:
            return DraftStatus.IN_PROGRESS
        return DraftStatus.DRAFT

    @property
    def is_resumable(self) -> bool:
        """A draft past the attributes step without areas is abandoned."""
        return self.current_step < AREAS_STEP or len(self.areas) > 0


class DraftPointer(BaseSchema):
    """Which draft a user was last working on, and at which step."""

    draft_id: str
    step: int = Field(1, ge=0)


class PendingAssetEnvelope(BaseSchema):
    """One-shot handoff of a newly created asset back to the areas screen."""

    area_id: str
    asset: InventoryItem
    created_at: datetime = Field(default_factory=utcnow)


class AddAssetParams(BaseSchema):
    """Inputs for the add-asset screen, kept outside navigation state."""

    area_id: str
    area_name: str
    draft_id: Optional[str] = None
    property_id: Optional[str] = None
    template_name: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
