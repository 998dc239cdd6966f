"""Default area generation from bedroom/bathroom counts and property type."""

import math
from typing import Optional

from onboarding.models.enums import AreaType, PropertyType
from onboarding.schemas.property import PropertyArea, PropertyData

AREA_ICONS: dict[AreaType, str] = {
    AreaType.KITCHEN: "restaurant",
    AreaType.LIVING_ROOM: "tv",
    AreaType.BEDROOM: "bed",
    AreaType.BATHROOM: "water",
    AreaType.GARAGE: "car",
    AreaType.OUTDOOR: "leaf",
    AreaType.LAUNDRY: "shirt",
    AreaType.OTHER: "home",
}

_COUNTED_ROOM_NAMES: dict[AreaType, str] = {
    AreaType.KITCHEN: "Kitchen",
    AreaType.LIVING_ROOM: "Living Room",
    AreaType.GARAGE: "Garage",
    AreaType.OUTDOOR: "Yard",
    AreaType.LAUNDRY: "Laundry Room",
}


def _area(area_id: str, name: str, area_type: AreaType, is_default: bool, icon: Optional[str] = None) -> PropertyArea:
    return PropertyArea(
        id=area_id,
        name=name,
        type=area_type,
        icon=icon or AREA_ICONS[area_type],
        is_default=is_default,
        selected=is_default,
    )


# Optional areas offered per property type
_UNIT_OPTIONAL = (
    ("balcony", "Balcony/Patio", AreaType.OUTDOOR, "flower"),
    ("laundry", "Laundry Room", AreaType.LAUNDRY, None),
    ("storage", "Storage Closet", AreaType.OTHER, "archive"),
)
_HOUSE_OPTIONAL = (
    ("garage", "Garage", AreaType.GARAGE, None),
    ("yard", "Yard", AreaType.OUTDOOR, None),
    ("basement", "Basement", AreaType.OTHER, "layers"),
    ("laundry", "Laundry Room", AreaType.LAUNDRY, None),
)


def optional_areas_for(property_type: PropertyType) -> list[PropertyArea]:
    catalog = _UNIT_OPTIONAL if property_type in (PropertyType.APARTMENT, PropertyType.CONDO) else _HOUSE_OPTIONAL
    return [_area(area_id, name, area_type, False, icon) for area_id, name, area_type, icon in catalog]


def bedroom_areas(bedrooms: int) -> list[PropertyArea]:
    areas = []
    for i in range(1, bedrooms + 1):
        if bedrooms == 1:
            name = "Bedroom"
        elif i == 1:
            name = "Master Bedroom"
        else:
            name = f"Bedroom {i}"
        areas.append(_area(f"bedroom{i}", name, AreaType.BEDROOM, True))
    return areas


def bathroom_areas(bathrooms: float) -> list[PropertyArea]:
    full = math.floor(bathrooms)
    areas = []
    for i in range(1, full + 1):
        if full == 1:
            name = "Bathroom"
        elif i == 1:
            name = "Master Bathroom"
        else:
            name = f"Bathroom {i}"
        areas.append(_area(f"bathroom{i}", name, AreaType.BATHROOM, True))

    if bathrooms % 1 != 0:
        areas.append(_area("half-bathroom", "Half Bathroom", AreaType.BATHROOM, True))
    return areas


def generate_default_areas(property_data: PropertyData) -> list[PropertyArea]:
    """Essential rooms, one area per bedroom/bathroom, then the type's optional set."""
    essentials = [
        _area("kitchen", "Kitchen", AreaType.KITCHEN, True),
        _area("living", "Living Room", AreaType.LIVING_ROOM, True),
    ]
    return [
        *essentials,
        *bedroom_areas(property_data.bedrooms or 0),
        *bathroom_areas(property_data.bathrooms or 0),
        *optional_areas_for(property_data.type),
    ]


def _counted_room_name(area_type: AreaType, count: int, index: int) -> str:
    base = _COUNTED_ROOM_NAMES.get(area_type, "Room")
    if count == 1:
        return base
    if index == 0:
        return f"Main {base}"
    return f"{base} {index + 1}"


def generate_areas_from_counts(
    property_data: Optional[PropertyData],
    counts: dict[AreaType, int],
) -> list[PropertyArea]:
    """Bedrooms and bathrooms from the property, plus explicitly counted extra rooms."""
    bedrooms = property_data.bedrooms if property_data else 0
    bathrooms = property_data.bathrooms if property_data else 0

    areas = [*bedroom_areas(bedrooms), *bathroom_areas(bathrooms)]
    for area_type, count in counts.items():
        area_type = AreaType(area_type)
        for i in range(count):
            areas.append(
                _area(f"{area_type.value}{i + 1}", _counted_room_name(area_type, count, i), area_type, False)
            )
    return areas
