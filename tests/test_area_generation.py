"""
Tests for default area generation.

Tests covering:
1. The house catalog with bedroom/bathroom counts
2. The apartment/condo catalog
3. Naming for single and multiple rooms
4. Explicit room counts
"""

from onboarding.models.enums import AreaType, PropertyType
from onboarding.schemas.property import PropertyData
from onboarding.services.area_generation import (
    bathroom_areas,
    bedroom_areas,
    generate_areas_from_counts,
    generate_default_areas,
    optional_areas_for,
)


class TestDefaultAreas:
    """Tests for generate_default_areas."""

    def test_house_with_three_beds_and_two_and_a_half_baths(self, house_data):
        areas = generate_default_areas(house_data)

        assert len(areas) == 12
        assert {a.name for a in areas} == {
            "Kitchen",
            "Living Room",
            "Master Bedroom",
            "Bedroom 2",
            "Bedroom 3",
            "Master Bathroom",
            "Bathroom 2",
            "Half Bathroom",
            "Garage",
            "Yard",
            "Basement",
            "Laundry Room",
        }

    def test_ids_are_unique(self, house_data):
        areas = generate_default_areas(house_data)

        assert len({a.id for a in areas}) == len(areas)

    def test_count_implied_areas_are_default_and_selected(self, house_data):
        areas = {a.name: a for a in generate_default_areas(house_data)}

        assert areas["Master Bedroom"].is_default
        assert areas["Master Bedroom"].selected
        assert areas["Half Bathroom"].type == AreaType.BATHROOM
        assert not areas["Garage"].is_default
        assert not areas["Garage"].selected

    def test_apartment_gets_unit_catalog(self):
        data = PropertyData(type=PropertyType.APARTMENT, bedrooms=1, bathrooms=1)

        names = [a.name for a in generate_default_areas(data)]

        assert names == [
            "Kitchen",
            "Living Room",
            "Bedroom",
            "Bathroom",
            "Balcony/Patio",
            "Laundry Room",
            "Storage Closet",
        ]

    def test_condo_matches_apartment_catalog(self):
        condo = [a.name for a in optional_areas_for(PropertyType.CONDO)]
        apartment = [a.name for a in optional_areas_for(PropertyType.APARTMENT)]

        assert condo == apartment

    def test_townhouse_uses_house_catalog(self):
        names = [a.name for a in optional_areas_for(PropertyType.TOWNHOUSE)]

        assert names == ["Garage", "Yard", "Basement", "Laundry Room"]

    def test_studio_has_no_bedrooms(self):
        data = PropertyData(type=PropertyType.APARTMENT, bedrooms=0, bathrooms=1)

        areas = generate_default_areas(data)

        assert not any(a.type == AreaType.BEDROOM for a in areas)


class TestRoomNaming:
    """Tests for bedroom and bathroom naming."""

    def test_single_bedroom_is_named_plainly(self):
        assert [a.name for a in bedroom_areas(1)] == ["Bedroom"]

    def test_half_bath_only(self):
        areas = bathroom_areas(0.5)

        assert [a.name for a in areas] == ["Half Bathroom"]
        assert areas[0].id == "half-bathroom"

    def test_two_full_baths(self):
        assert [a.id for a in bathroom_areas(2)] == ["bathroom1", "bathroom2"]


class TestRoomCounts:
    """Tests for generate_areas_from_counts."""

    def test_counts_add_named_rooms(self):
        data = PropertyData(bedrooms=1, bathrooms=1)

        areas = generate_areas_from_counts(data, {AreaType.KITCHEN: 2, AreaType.GARAGE: 1})

        assert [a.name for a in areas] == ["Bedroom", "Bathroom", "Main Kitchen", "Kitchen 2", "Garage"]

    def test_counts_without_property_data(self):
        areas = generate_areas_from_counts(None, {AreaType.LAUNDRY: 1})

        assert [(a.id, a.name) for a in areas] == [("laundry1", "Laundry Room")]
