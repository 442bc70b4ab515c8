# linksight/conftest.py
import os
import sys
from pathlib import Path

import pytest

# Add repo root to PYTHONPATH so `linksight.*` imports resolve
REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

# Settings are read at import time
os.environ.setdefault("ENV", "test")
os.environ.setdefault("SKIP_ENV_VALIDATION", "1")
os.environ.setdefault("JWT_SECRET", "linksight-test-secret-0123456789abcdef")

from linksight.core.database import init_engine, create_all_tables, truncate_all_tables
from linksight.features.premium.gate import reset_access_gate


@pytest.fixture(scope="session")
def db_url():
    """
    Database used by the test session.

    TEST_DATABASE_URL runs the suite against Postgres; otherwise a shared
    in-memory SQLite database is used.
    """
    return os.getenv("TEST_DATABASE_URL") or "sqlite://"


@pytest.fixture(scope="session", autouse=True)
def create_tables(db_url):
    """Create all tables once per test session."""
    init_engine(db_url)
    create_all_tables()
    yield


@pytest.fixture(scope="function", autouse=True)
def reset_db():
    """Start every test with empty tables and a gate that reloads limits."""
    truncate_all_tables()
    reset_access_gate()
    yield
    reset_access_gate()
