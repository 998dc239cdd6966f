"""Enumeration types for the onboarding domain model."""

from enum import Enum


class PropertyType(str, Enum):
    """Type of property being onboarded."""
    APARTMENT = "apartment"
    HOUSE = "house"
    CONDO = "condo"
    TOWNHOUSE = "townhouse"
    UNSET = ""


class AreaType(str, Enum):
    """Kind of room or zone."""
    KITCHEN = "kitchen"
    LIVING_ROOM = "living_room"
    BEDROOM = "bedroom"
    BATHROOM = "bathroom"
    GARAGE = "garage"
    OUTDOOR = "outdoor"
    LAUNDRY = "laundry"
    OTHER = "other"


class AssetType(str, Enum):
    """Kind of documented inventory item."""
    APPLIANCE = "appliance"
    FIXTURE = "fixture"
    SYSTEM = "system"
    STRUCTURE = "structure"
    FURNITURE = "furniture"
    OTHER = "other"


class AssetCondition(str, Enum):
    """Condition of an area or asset."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    NEEDS_REPLACEMENT = "needs_replacement"


class DraftStatus(str, Enum):
    """Lifecycle status derived from onboarding progress."""
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SessionState(str, Enum):
    """Runtime state of a draft session."""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    SAVING = "saving"
    ERROR = "error"


class ReconcilerState(str, Enum):
    """Runtime state of an area reconciler."""
    IDLE = "idle"
    MERGING = "merging"
    RESOLVING = "resolving"
    READY = "ready"
    DISPOSED = "disposed"


class AreaSource(str, Enum):
    """Which candidate source the reconciled area list came from."""
    REMOTE = "remote"
    NAVIGATION = "navigation"
    DRAFT = "draft"
    DEFAULTS = "defaults"
    EMPTY = "empty"
