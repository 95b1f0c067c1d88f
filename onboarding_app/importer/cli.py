"""
CLI commands for the onboarding importer (``flask importer ...``).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click
from celery import Celery
from celery.exceptions import TimeoutError as CeleryTimeoutError
from flask.cli import AppGroup, ScriptInfo

from onboarding_app.importer.celery_app import DEFAULT_QUEUE_NAME, get_celery_app
from onboarding_app.importer.storage import StorageError
from onboarding_app.importer.tasks import ONBOARD_ROSTER_TASK, execute_onboarding_import
from onboarding_app.importer.triggers import TriggerPayload
from onboarding_app.importer.utils import get_object_storage, get_reference_cache
from onboarding_app.models import ImportJob, ImportJobStatus
from onboarding_app.models.base import db
from onboarding_app.utils.importer import is_importer_enabled

CLI_UPLOAD_BUCKET = "cli-uploads"


@click.group(name="importer", cls=AppGroup)
@click.pass_context
def importer_cli(ctx):
    """Onboarding importer management commands."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    if not is_importer_enabled(app):
        raise click.ClickException(
            "Importer is disabled via IMPORTER_ENABLED=false. Enable it to run importer CLI commands."
        )


def get_disabled_importer_group() -> click.Group:
    """
    Return a minimal command group that informs the operator the importer is disabled.
    """

    @click.group(name="importer", invoke_without_command=True)
    def disabled_group():
        raise click.ClickException("Importer commands are unavailable because IMPORTER_ENABLED=false.")

    return disabled_group


def _resolve_celery(app) -> Celery:
    celery_app = get_celery_app(app)
    if celery_app is None:
        raise click.ClickException(
            "Importer Celery app is unavailable. Ensure IMPORTER_ENABLED=true and the "
            "importer package initialises before running worker commands."
        )
    return celery_app


def _enqueue(app, payload: TriggerPayload) -> str:
    celery_app = _resolve_celery(app)
    task = celery_app.tasks.get(ONBOARD_ROSTER_TASK)
    if task is None:
        raise click.ClickException(f"Task '{ONBOARD_ROSTER_TASK}' is not registered.")
    async_result = task.apply_async(kwargs={"payload": payload.to_dict()})
    return async_result.id


@importer_cli.group(name="worker")
@click.pass_context
def worker_group(ctx):
    """Manage the importer background worker."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    state = app.extensions.get("importer", {})
    if not state.get("worker_enabled") and not app.config.get("IMPORTER_WORKER_ENABLED"):
        click.echo(
            "Warning: IMPORTER_WORKER_ENABLED is false. Commands will still run, "
            "but enable the flag to surface accurate health status.",
            err=True,
        )


@worker_group.command("run")
@click.option("--loglevel", default="info", show_default=True)
@click.option("--concurrency", type=int, help="Number of worker processes/threads.")
@click.option("--pool", type=str, help="Celery pool implementation (e.g., 'prefork', 'solo', 'threads').")
@click.option("--queues", default=DEFAULT_QUEUE_NAME, show_default=True, help="Comma-separated queue list to consume.")
@click.pass_context
def worker_run(ctx, loglevel: str, concurrency: Optional[int], pool: Optional[str], queues: str):
    """Start the Celery worker in the current process."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    celery_app = _resolve_celery(app)
    app.extensions.setdefault("importer", {})["worker_enabled"] = True

    argv = ["worker", "--loglevel", loglevel, "-Q", queues]
    if concurrency:
        argv.extend(["--concurrency", str(concurrency)])
    if pool:
        argv.extend(["--pool", pool])

    pool_msg = f", pool: {pool}" if pool else ""
    click.echo(f"Starting importer worker (queues: {queues}, loglevel: {loglevel}{pool_msg})")
    try:
        celery_app.worker_main(argv=argv)
    except KeyboardInterrupt:
        click.echo("Worker shutdown requested. Exiting...")


@worker_group.command("ping")
@click.option("--timeout", default=10.0, show_default=True, help="Seconds to wait for a response.")
@click.pass_context
def worker_ping(ctx, timeout: float):
    """Validate worker connectivity by executing the heartbeat task."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    celery_app = _resolve_celery(app)
    task = celery_app.tasks.get("importer.healthcheck")
    if task is None:
        raise click.ClickException("Heartbeat task 'importer.healthcheck' is not registered.")

    result = task.apply_async()
    try:
        payload = result.get(timeout=timeout)
    except CeleryTimeoutError as exc:
        raise click.ClickException(f"Worker did not respond within {timeout}s") from exc

    click.echo(json.dumps(payload, indent=2))


def _stage_local_file(app, school_id: str, file_path: Path) -> tuple[str, str]:
    """Copy a local CSV into object storage so the job reads it like any upload."""

    key = f"{school_id}/{file_path.name}"
    try:
        get_object_storage(app).put_bytes(CLI_UPLOAD_BUCKET, key, file_path.read_bytes())
    except (OSError, StorageError) as exc:
        raise click.ClickException(f"Unable to stage {file_path}: {exc}") from exc
    return CLI_UPLOAD_BUCKET, key


@importer_cli.command("run")
@click.option("--school-id", required=True, help="School (tenant) the roster belongs to.")
@click.option(
    "--file",
    "file_path",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="Local CSV to import; staged into object storage first.",
)
@click.option("--bucket", help="Bucket of an object already in storage.")
@click.option("--key", help="Key of an object already in storage.")
@click.option("--status-id", help="Existing import job to finalize; a new one is created when omitted.")
@click.option("--error-report-key", help="Storage key for the error report (defaults next to the upload).")
@click.option(
    "--inline/--no-inline",
    default=False,
    help="Run inline within the CLI process instead of queueing via Celery.",
)
@click.pass_context
def importer_run(
    ctx,
    school_id: str,
    file_path: Optional[Path],
    bucket: Optional[str],
    key: Optional[str],
    status_id: Optional[str],
    error_report_key: Optional[str],
    inline: bool,
):
    """Import a roster CSV for a school."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()

    if file_path is not None and (bucket or key):
        raise click.ClickException("Use either --file or --bucket/--key, not both.")
    if file_path is not None:
        bucket, key = _stage_local_file(app, school_id, file_path.resolve())
    elif not (bucket and key):
        raise click.ClickException("Provide --file, or both --bucket and --key.")

    job = db.session.get(ImportJob, status_id) if status_id else None
    if status_id and (job is None or job.school_id != school_id):
        raise click.ClickException(f"Import job {status_id} not found for school {school_id}.")
    if job is None:
        job = ImportJob(school_id=school_id, status=ImportJobStatus.PROCESSING)
        db.session.add(job)
        db.session.flush()

    payload = TriggerPayload(
        bucket=bucket,
        key=key,
        school_id=school_id,
        status_table=ImportJob.__tablename__,
        status_id=job.id,
        error_report_key=error_report_key,
    )
    job.source_bucket = bucket
    job.source_key = key
    job.trigger_payload_json = payload.to_dict()
    db.session.commit()
    job_id = job.id

    if not inline:
        task_id = _enqueue(app, payload)
        app.logger.info(
            "Onboarding import queued via CLI",
            extra={"importer_job_id": job_id, "importer_task_id": task_id, "importer_school_id": school_id},
        )
        click.echo(json.dumps({"jobId": job_id, "taskId": task_id, "status": "queued"}))
        return

    result = execute_onboarding_import(app, payload)
    click.echo(json.dumps(result.as_dict(), indent=2, sort_keys=True))


@importer_cli.command("retry")
@click.option("--status-id", required=True, help="ID of the import job to retry.")
@click.pass_context
def importer_retry(ctx, status_id: str):
    """Re-enqueue a job left in PROCESSING using its stored trigger payload."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()

    job = db.session.get(ImportJob, status_id)
    if job is None:
        raise click.ClickException(f"Import job {status_id} not found.")
    if job.status.is_terminal:
        raise click.ClickException(f"Import job {status_id} already finished with status {job.status.value}.")
    if not job.trigger_payload_json:
        raise click.ClickException(f"Import job {status_id} cannot be retried: trigger payload not stored.")

    payload = TriggerPayload.from_mapping(job.trigger_payload_json)
    task_id = _enqueue(app, payload)
    app.logger.info(
        "Onboarding import retried via CLI",
        extra={"importer_job_id": status_id, "importer_task_id": task_id, "importer_school_id": job.school_id},
    )
    click.echo(json.dumps({"jobId": status_id, "taskId": task_id, "status": "queued"}))


@importer_cli.group(name="reference-cache")
def reference_cache_group():
    """Inspect or reset the per-school reference data cache."""


@reference_cache_group.command("clear")
@click.option("--school-id", help="Only drop this school's cached reference data.")
@click.pass_context
def reference_cache_clear(ctx, school_id: Optional[str]):
    """Drop cached reference data so the next import reloads it."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    cache = get_reference_cache(app)
    if school_id:
        removed = 1 if cache.invalidate(school_id) else 0
    else:
        removed = cache.clear()
    click.echo(json.dumps({"cleared": removed, "schoolId": school_id}))
