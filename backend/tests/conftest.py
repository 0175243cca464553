"""
Pytest configuration and shared test helpers for backend tests.
"""
import os
import sys
from pathlib import Path

# Skip the startup customer fetch when running under pytest.
os.environ.setdefault("PYTEST_RUNNING", "1")

backend_root = Path(__file__).resolve().parent.parent
if str(backend_root) not in sys.path:
    sys.path.insert(0, str(backend_root))

import pytest

from fastapi.testclient import TestClient
from server import app
from services.customer_service import customer_service
from services.preference_store import preference_store


WEBHOOK_ENV_PREFIXES = ("WEBHOOK_", "NEXT_PUBLIC_WEBHOOK_")


@pytest.fixture(autouse=True)
def clean_state(monkeypatch):
    """No webhook env leaks between tests; shared singletons start empty."""
    for key in list(os.environ):
        if key.startswith(WEBHOOK_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    customer_service.customers = []
    customer_service.last_rejections = []
    customer_service.error = None
    customer_service.loaded = False
    preference_store._items.clear()
    yield


@pytest.fixture
def client():
    """Return a TestClient for the main FastAPI app (server:app)."""
    return TestClient(app)
