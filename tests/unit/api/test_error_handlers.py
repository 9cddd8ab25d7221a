"""
Error Handler Unit Tests

A small app with the production exception handlers, so the response
envelope and the CRITICAL escalation can be checked in isolation.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from config import settings
from utils.error_codes import AppError
from utils.error_handlers import register_exception_handlers


@pytest.fixture
def app():
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/balance")
    async def balance():
        raise AppError("GAME_402", "Cannot subtract 50.00, balance is 10.00", {"player_id": "p-1"})

    @app.get("/database")
    async def database():
        raise AppError("DB_201")

    @app.get("/crash")
    async def crash():
        raise RuntimeError("unexpected")

    return app


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


class TestAppErrors:
    """Test catalogued errors."""

    def test_status_follows_code_prefix(self, client):
        with patch("services.status_monitor.status_monitor.log_incident", AsyncMock()) as log_incident:
            response = client.get("/balance")

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Cannot subtract 50.00, balance is 10.00"
        assert body["code"] == "GAME_402"
        assert body["reference"].startswith("ERR-")
        log_incident.assert_not_awaited()

    def test_development_adds_origin_and_solution(self, client):
        body = client.get("/balance").json()

        assert body["solution"] == "Add pre-transaction validation"
        assert "balance" in body["origin"]

    def test_production_hides_internals(self, client):
        with patch.object(settings, "ENVIRONMENT", "production"):
            body = client.get("/balance").json()

        assert set(body) == {"error", "code", "reference"}

    def test_critical_error_opens_api_incident(self, client):
        with patch("services.status_monitor.status_monitor.log_incident", AsyncMock()) as log_incident, \
             patch("utils.error_monitor.error_monitor.alert_manager.trigger", AsyncMock()) as trigger:
            response = client.get("/database")

        assert response.status_code == 503
        assert response.json()["error"] == "Database connection timeout"
        trigger.assert_awaited_once()

        error_info, context = log_incident.await_args.args
        assert error_info == {"code": "DB_201", "message": "Database connection timeout", "severity": "CRITICAL"}
        assert context["service"] == "api"
        assert context["route"] == "/database"
        assert response.json()["reference"] in context["error"]


class TestUnhandledErrors:
    """Test the catch-all handler."""

    def test_unhandled_exception_maps_to_ser_100(self, client):
        response = client.get("/crash")

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "SER_100"
        assert body["error"] == "Unhandled server error"
        assert "unexpected" not in body["error"]
