"""Property onboarding drafts: persistence, reconciliation and photo references."""

__version__ = "1.0.0"
