"""
Importer pipeline helpers: normalization, reference resolution, roster loading
and completion reporting.
"""

from .deterministic import InvalidPhoneNumber, normalize_email, normalize_phone
from .idempotency import find_one, insert_if_absent
from .load_core import RosterLoader, RowOutcome
from .onboarding import (
    DEFAULT_STATUS_TABLE,
    ImportJobNotFound,
    OnboardingImportResult,
    UnknownStatusTable,
    run_onboarding_import,
)
from .reference_cache import ReferenceData, ReferenceDataCache, load_reference_data, normalize_name
from .report import CompletionReporter, ImportSummary, RowError, default_error_report_key
from .resolution import LookupResult, RowResolution, lookup_single, resolve_row

__all__ = [
    "CompletionReporter",
    "DEFAULT_STATUS_TABLE",
    "ImportJobNotFound",
    "ImportSummary",
    "InvalidPhoneNumber",
    "LookupResult",
    "OnboardingImportResult",
    "ReferenceData",
    "ReferenceDataCache",
    "RosterLoader",
    "RowError",
    "RowOutcome",
    "RowResolution",
    "UnknownStatusTable",
    "default_error_report_key",
    "find_one",
    "insert_if_absent",
    "load_reference_data",
    "lookup_single",
    "normalize_email",
    "normalize_name",
    "normalize_phone",
    "resolve_row",
    "run_onboarding_import",
]
