"""
Pytest configuration and fixtures for the Odin back-office tests.

Points the database at a throwaway SQLite file, disables Redis and the
background status monitor, and provides an owner operator token.
"""

import asyncio
import os
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parent.parent
BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

# Environment must be in place before config is imported anywhere
_TEST_DB_DIR = tempfile.mkdtemp(prefix="odin-tests-")
os.environ["SQLALCHEMY_DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/test.db"
os.environ["REDIS_URL"] = ""
os.environ["STATUS_MONITOR_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "development"
os.environ["OWNER_BOOTSTRAP_TOKEN"] = "owner-test-token"
os.environ["DISCORD_WEBHOOK"] = ""
os.environ["TWILIO_SID"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["API_URL"] = ""
os.environ["AUTH_URL"] = ""
os.environ["PAYMENT_HEALTH_URL"] = ""

OWNER_TOKEN = "owner-test-token"


@pytest.fixture(autouse=True)
def reset_status_state():
    """Every test starts with all services operational and no SSE subscribers."""
    from models.system_health import ServiceStatus
    from services.status_monitor import status_monitor
    from utils.event_broker import event_broker

    for info in status_monitor.services.values():
        info["status"] = ServiceStatus.OPERATIONAL
        info["uptime"] = 100.0
        info["last_checked"] = None
    event_broker.subscribers.clear()
    yield


@pytest.fixture
def clean_db():
    """Fresh schema for each test."""
    from database.database import db_manager

    asyncio.run(db_manager.drop_tables())
    asyncio.run(db_manager.create_tables())
    yield db_manager


@pytest.fixture
def owner_token(clean_db):
    from init_db import bootstrap_owner

    asyncio.run(bootstrap_owner())
    return OWNER_TOKEN


@pytest.fixture
def auth_headers(owner_token):
    return {"Authorization": f"Bearer {owner_token}"}


@pytest.fixture
def client(clean_db):
    """Client for the real app; the lifespan (monitor loops, Redis bridge) is not started."""
    from start_website import app

    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def create_operator(client, auth_headers):
    """Create an operator through the API and return (operator json, token)."""

    def _create(admin_name="worker_one", role="FINANCE_WORKER", permissions=None, email=None):
        response = client.post(
            "/api/admin/operators",
            json={
                "admin_name": admin_name,
                "email": email or f"{admin_name}@example.com",
                "role": role,
                "permissions": permissions or {},
            },
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text
        data = response.json()
        return data["operator"], data["api_token"]

    return _create


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: runs several components together against the test database"
    )
