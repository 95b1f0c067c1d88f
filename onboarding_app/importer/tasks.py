"""
Importer Celery tasks.

``importer.pipeline.onboard_roster`` imports one uploaded roster;
``importer.pipeline.handle_trigger_event`` unpacks queue batches or event
envelopes and imports each payload in order. Storage and database outages are
retried by Celery with backoff; trigger problems are not.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from celery import shared_task
from flask import Flask, current_app
from sqlalchemy.exc import OperationalError

from onboarding_app.importer.pipeline import OnboardingImportResult, run_onboarding_import
from onboarding_app.importer.storage import StorageError
from onboarding_app.importer.triggers import TriggerPayload, iter_trigger_payloads, parse_trigger_payload
from onboarding_app.importer.utils import get_object_storage, get_reference_cache
from onboarding_app.models.base import db
from onboarding_app.utils.importer import get_default_country_code, get_status_tables

ONBOARD_ROSTER_TASK = "importer.pipeline.onboard_roster"
HANDLE_TRIGGER_EVENT_TASK = "importer.pipeline.handle_trigger_event"

RETRYABLE_ERRORS = (StorageError, OperationalError)


def execute_onboarding_import(app: Flask, payload: TriggerPayload) -> OnboardingImportResult:
    """Run one import with the app's storage, reference cache and settings."""

    return run_onboarding_import(
        payload,
        session=db.session,
        storage=get_object_storage(app),
        reference_cache=get_reference_cache(app),
        default_country_code=get_default_country_code(app),
        status_tables=get_status_tables(app),
    )


@shared_task(name="importer.healthcheck", bind=True)
def importer_healthcheck(self) -> dict[str, Any]:
    """
    Simple heartbeat task used by worker health checks.
    """
    now = datetime.now(timezone.utc)
    return {
        "status": "ok",
        "timestamp": now.isoformat(),
        "worker_hostname": self.request.hostname,
        "app_version": current_app.config.get("APP_VERSION"),
    }


@shared_task(
    name=ONBOARD_ROSTER_TASK,
    bind=True,
    autoretry_for=RETRYABLE_ERRORS,
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
)
def onboard_roster(self, *, payload: Mapping[str, Any]) -> dict[str, Any]:
    """Import the roster named by ``payload`` (camelCase trigger keys)."""

    trigger = parse_trigger_payload(payload)
    current_app.logger.info(
        "Importer task received roster upload",
        extra={
            "importer_task_id": self.request.id,
            "importer_school_id": trigger.school_id,
            "importer_job_id": trigger.status_id,
            "importer_attempt": self.request.retries,
        },
    )
    return execute_onboarding_import(current_app, trigger).as_dict()


@shared_task(
    name=HANDLE_TRIGGER_EVENT_TASK,
    bind=True,
    autoretry_for=RETRYABLE_ERRORS,
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
)
def handle_trigger_event(self, event: Any) -> list[dict[str, Any]]:
    """Import every payload carried by a queue batch, event envelope or bare payload."""

    results = []
    for trigger in iter_trigger_payloads(event):
        results.append(execute_onboarding_import(current_app, trigger).as_dict())
    current_app.logger.info(
        "Importer trigger event processed",
        extra={"importer_task_id": self.request.id, "importer_payload_count": len(results)},
    )
    return results
