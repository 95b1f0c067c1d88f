"""Student and guardian onboarding importer service."""
