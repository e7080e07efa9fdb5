from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
API_DIR = ROOT / "API"
if str(API_DIR) not in sys.path:
    sys.path.insert(0, str(API_DIR))

# Test-mode runtime guards:
# - no Postgres driver or server required
# - no identity directory traffic
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("IDENTITY_API_KEY", "")
os.environ.setdefault("DASHBOARD_TIMEZONE", "UTC")

from progress_api.core.app_metrics import reset_metrics  # noqa: E402
from progress_api.main import app  # noqa: E402

# Wednesday afternoon; every fixture timestamp is relative to this instant.
FIXED_NOW = datetime(2026, 3, 18, 15, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def client() -> TestClient:
    with TestClient(app) as tc:
        yield tc


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture(autouse=True)
def _clean_state():
    reset_metrics()
    yield
    app.dependency_overrides.clear()
