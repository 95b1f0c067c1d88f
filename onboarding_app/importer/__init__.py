"""
Onboarding importer package.

Mounts the importer blueprint, CLI and Celery worker when the importer is
enabled, and keeps per-process state (Celery app, object storage, reference
data cache) on ``app.extensions['importer']``.
"""

from __future__ import annotations

from flask import Flask

from onboarding_app.utils.importer import is_importer_enabled

from .celery_app import ensure_celery_app, get_celery_app
from .cli import get_disabled_importer_group, importer_cli
from .utils import IMPORTER_EXTENSION_KEY, ensure_extension_state, get_object_storage, get_reference_cache
from .views import importer_blueprint

__all__ = [
    "IMPORTER_EXTENSION_KEY",
    "get_celery_app",
    "get_object_storage",
    "get_reference_cache",
    "init_importer",
]


def _set_cli(app: Flask, enabled: bool) -> None:
    """Register the appropriate CLI group based on flag state."""
    command_name = importer_cli.name
    if command_name in app.cli.commands:
        app.cli.commands.pop(command_name)

    if enabled:
        app.cli.add_command(importer_cli)
    else:
        app.cli.add_command(get_disabled_importer_group())


def init_importer(app: Flask) -> None:
    """
    Conditionally mount the importer blueprint, CLI and worker based on configuration.
    """
    enabled = is_importer_enabled(app)
    worker_enabled = bool(app.config.get("IMPORTER_WORKER_ENABLED", False))

    state = ensure_extension_state(app)
    state.update({"enabled": enabled, "worker_enabled": worker_enabled})

    if not enabled:
        _set_cli(app, enabled=False)
        app.logger.info("Importer disabled via IMPORTER_ENABLED flag; skipping registration.")
        return

    ensure_celery_app(app, state)
    cache = get_reference_cache(app)
    storage = get_object_storage(app)

    if importer_blueprint.name not in app.blueprints and not getattr(app, "_got_first_request", False):
        app.register_blueprint(importer_blueprint)
    elif importer_blueprint.name not in app.blueprints:
        app.logger.warning(
            "Importer blueprint registration skipped because the app has already handled its first request."
        )
    _set_cli(app, enabled=True)

    app.logger.info(
        "Importer enabled",
        extra={
            "importer_worker_enabled": worker_enabled,
            "importer_storage_root": str(storage.root),
            "importer_reference_cache_ttl": cache.ttl_seconds,
        },
    )
