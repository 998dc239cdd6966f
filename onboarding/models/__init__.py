"""SQLAlchemy models and enumerations for the onboarding subsystem."""

from onboarding.models.kv import KeyValueEntry

__all__ = ["KeyValueEntry"]
