"""Prometheus metrics helpers for the importer."""

from __future__ import annotations

from typing import Literal

from prometheus_client import Counter, Histogram

RowOutcome = Literal["created", "updated", "skipped", "error"]

_rows_counter = Counter(
    "importer_onboarding_rows_total",
    "Roster rows processed by outcome.",
    ["outcome"],
)
_jobs_counter = Counter(
    "importer_onboarding_jobs_total",
    "Onboarding import jobs finished, by final status.",
    ["status"],
)
_job_duration = Histogram(
    "importer_onboarding_job_duration_seconds",
    "Duration of onboarding import jobs in seconds.",
    buckets=(0.5, 1, 2, 5, 10, 30, 60, 120, 300, 600),
)
_reference_cache_counter = Counter(
    "importer_reference_cache_lookups_total",
    "Reference data cache lookups by result.",
    ["result"],
)


def record_row_outcome(outcome: RowOutcome, count: int = 1) -> None:
    """Increment the per-row outcome counter."""

    if count:
        _rows_counter.labels(outcome=outcome).inc(count)


def record_job_completed(*, status: str, duration_seconds: float) -> None:
    """Capture the final status and wall-clock duration of a job."""

    _jobs_counter.labels(status=status).inc()
    _job_duration.observe(max(duration_seconds, 0.0))


def record_reference_cache_lookup(hit: bool) -> None:
    _reference_cache_counter.labels(result="hit" if hit else "miss").inc()
