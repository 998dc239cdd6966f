"""Pydantic schemas for the onboarding subsystem."""

from onboarding.schemas.base import BaseSchema, utcnow
from onboarding.schemas.property import *
