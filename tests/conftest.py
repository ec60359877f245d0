"""
Pytest configuration and fixtures.

This file provides pytest-specific configuration and fixtures.
For standard test utilities, see tests/__init__.py
"""

import pytest

# Variables read by load_config and the notification channels
ISOLATED_ENV_VARS = (
    "DATABASE_URL",
    "REDIS_URL",
    "FX_BASE_URL",
    "GEOCODER_BASE_URL",
    "HOUSING_CONFIG",
    "NOTIFICATION_DRY_RUN",
    "NOTIFICATION_WEBHOOK_URL",
)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "db: marks tests that create a SQLite database"
    )


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """
    Keep the developer's shell out of the tests.

    A DATABASE_URL or NOTIFICATION_DRY_RUN exported locally would otherwise
    change config loading and webhook delivery under test.
    """
    for name in ISOLATED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
