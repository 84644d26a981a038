"""
Central pytest configuration for the booking core tests.

This file sets the test environment before application modules are
imported, registers markers, and exposes the shared fixtures.
"""

import os

# Set early so import-time configuration reads test values
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("TZ", "UTC")
os.environ["TESTING"] = "true"

from tests.config.markers import pytest_collection_modifyitems, pytest_configure  # noqa: E402,F401
from tests.fixtures.database_fixtures import *  # noqa: E402,F401,F403
from tests.fixtures.domain_fixtures import *  # noqa: E402,F401,F403
