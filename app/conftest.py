"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide settings
overrides. App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []

    # No Redis in tests
    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}
    }

    # Test client speaks plain HTTP
    settings.SECURE_SSL_REDIRECT = False


@pytest.fixture(autouse=True)
def clear_cache():
    """Start every test with an empty cache (throttle history lives there)."""
    from django.core.cache import cache

    cache.clear()
    yield


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_tasks.py, test_handlers.py, etc. → integration
    - test_catalog.py, test_proration.py, test_exceptions.py, etc. → unit
    - Unmatched files → integration

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_orchestrator.py",
        "test_activator.py",
    ]

    unit_patterns = [
        "test_catalog.py",
        "test_proration.py",
        "test_exceptions.py",
        "test_services.py",
        "test_helpers.py",
        "test_stripe_adapter.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
