# conftest.py

import os

import pytest

# Set testing environment BEFORE importing app so the config classes pick
# TestingConfig defaults (no SECRET_KEY warning, no file logging)
os.environ["FLASK_ENV"] = "testing"

# Now import app and other modules after environment is set
from app import create_app  # noqa: E402
from onboarding_app.models import db  # noqa: E402


@pytest.fixture(scope="function")
def app_overrides():
    """Per-test config overrides; override this fixture in a module to change them."""
    return {}


@pytest.fixture(scope="function")
def app(tmp_path, app_overrides):
    """Create and configure a test Flask application with an isolated database"""
    db_path = (tmp_path / "onboarding_test.db").as_posix()
    config = {
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "SQLALCHEMY_ECHO": False,
        "SECRET_KEY": "test-secret-key-for-testing-only",
        "MONITORING_ENABLED": False,
        "ENABLE_FILE_LOGGING": False,
        "ENABLE_CONSOLE_LOGGING": False,
        "IMPORTER_ENABLED": True,
        "IMPORTER_WORKER_ENABLED": False,
        "IMPORTER_STORAGE_ROOT": str(tmp_path / "storage"),
        "IMPORTER_DEFAULT_COUNTRY_CODE": "234",
        "IMPORTER_STATUS_TABLES": ("import_jobs",),
        "IMPORTER_REFERENCE_CACHE_TTL_SECONDS": 300,
        "CELERY_SQLITE_PATH": str(tmp_path / "celery.sqlite"),
        "CELERY_CONFIG": {"task_always_eager": True, "task_eager_propagates": True},
    }
    config.update(app_overrides)
    flask_app = create_app(config, flask_env="testing")

    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


@pytest.fixture
def runner(app):
    """Create a test CLI runner for the Flask application"""
    return app.test_cli_runner()


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers and ensure testing environment"""
    os.environ["FLASK_ENV"] = "testing"

    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers"""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.slow)
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
