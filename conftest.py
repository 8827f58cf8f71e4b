"""
Repository-level pytest configuration.

Points Django at the project settings when pytest is started from the
repository root. The Django-aware configuration lives in app/conftest.py.
"""

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
