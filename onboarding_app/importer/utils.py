"""
Importer-specific helpers for extension state, storage and reference caching.
"""

from __future__ import annotations

from typing import Any

from flask import Flask

from onboarding_app.models import db

from .pipeline.reference_cache import DEFAULT_TTL_SECONDS, ReferenceDataCache, load_reference_data
from .storage import ObjectStorage, resolve_storage_root

IMPORTER_EXTENSION_KEY = "importer"


def ensure_extension_state(app: Flask) -> dict[str, Any]:
    return app.extensions.setdefault(
        IMPORTER_EXTENSION_KEY,
        {
            "enabled": False,
            "worker_enabled": False,
            "celery_app": None,
            "reference_cache": None,
            "storage": None,
        },
    )


def get_reference_cache(app: Flask) -> ReferenceDataCache:
    """
    Return the process-wide reference cache, creating it on first use.

    The loader reads through ``db.session`` of whichever app context is active
    when a miss occurs.
    """

    state = ensure_extension_state(app)
    cache: ReferenceDataCache | None = state.get("reference_cache")
    if cache is None:
        cache = ReferenceDataCache(
            lambda school_id: load_reference_data(db.session, school_id),
            ttl_seconds=app.config.get("IMPORTER_REFERENCE_CACHE_TTL_SECONDS", DEFAULT_TTL_SECONDS),
        )
        state["reference_cache"] = cache
    return cache


def get_object_storage(app: Flask) -> ObjectStorage:
    state = ensure_extension_state(app)
    storage: ObjectStorage | None = state.get("storage")
    if storage is None:
        storage = ObjectStorage(resolve_storage_root(app))
        state["storage"] = storage
    return storage
