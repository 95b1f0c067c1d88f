"""
Utility helpers for importer feature flag and settings checks.
"""

from __future__ import annotations

from typing import Iterable, Tuple

from flask import current_app


def _get_config(app=None):
    if app is not None:
        return app.config
    return current_app.config


def is_importer_enabled(app=None) -> bool:
    """Return True when the importer feature flag is enabled."""
    config = _get_config(app)
    return bool(config.get("IMPORTER_ENABLED", False))


def get_status_tables(app=None) -> Tuple[str, ...]:
    """Return the status-record table names a trigger payload may target."""
    config = _get_config(app)
    tables: Iterable[str] = config.get("IMPORTER_STATUS_TABLES", ("import_jobs",))
    return tuple(table.lower() for table in tables)


def get_default_country_code(app=None) -> str:
    """Return the calling code applied to national-format phone numbers."""
    config = _get_config(app)
    return str(config.get("IMPORTER_DEFAULT_COUNTRY_CODE", "234")).strip().lstrip("+")
