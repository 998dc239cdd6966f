"""Services for the onboarding subsystem."""
