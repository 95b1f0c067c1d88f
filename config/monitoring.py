# config/monitoring.py

import os

from config.base import _coerce_bool, _coerce_int


class MonitoringConfig:
    """Logging and metrics settings read by ``setup_logging`` and the app factory."""

    MONITORING_ENABLED = _coerce_bool(os.environ.get("MONITORING_ENABLED"))
    METRICS_ENDPOINT = os.environ.get("METRICS_ENDPOINT") or "/metrics"

    # Handlers built by onboarding_app.utils.logging_config
    LOG_LEVEL = (os.environ.get("LOG_LEVEL") or "INFO").upper()
    LOG_FORMAT = (os.environ.get("LOG_FORMAT") or "json").lower()
    LOG_DIR = os.environ.get("LOG_DIR") or "logs"
    LOG_FILE_MAX_BYTES = _coerce_int(os.environ.get("LOG_FILE_MAX_BYTES"), 5 * 1024 * 1024, minimum=0)
    LOG_FILE_BACKUP_COUNT = _coerce_int(os.environ.get("LOG_FILE_BACKUP_COUNT"), 5, minimum=0)
    ENABLE_FILE_LOGGING = _coerce_bool(os.environ.get("ENABLE_FILE_LOGGING"), default=True)
    ENABLE_CONSOLE_LOGGING = _coerce_bool(os.environ.get("ENABLE_CONSOLE_LOGGING"), default=True)

    # Reported by the importer.healthcheck task
    APP_NAME = os.environ.get("APP_NAME") or "onboarding-importer"
    APP_VERSION = os.environ.get("APP_VERSION") or "1.0.0"


class DevelopmentMonitoringConfig(MonitoringConfig):
    LOG_LEVEL = "DEBUG"
    LOG_FORMAT = "text"


class ProductionMonitoringConfig(MonitoringConfig):
    # Workers and web processes log JSON to stdout for the collector
    LOG_FORMAT = "json"
    ENABLE_FILE_LOGGING = _coerce_bool(os.environ.get("ENABLE_FILE_LOGGING"))
    MONITORING_ENABLED = _coerce_bool(os.environ.get("MONITORING_ENABLED"), default=True)


class TestingMonitoringConfig(MonitoringConfig):
    MONITORING_ENABLED = False
    LOG_LEVEL = "WARNING"
    LOG_FORMAT = "text"
    ENABLE_FILE_LOGGING = False
    ENABLE_CONSOLE_LOGGING = False
