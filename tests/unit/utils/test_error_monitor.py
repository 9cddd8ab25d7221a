"""
Error Monitor Unit Tests
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from utils.error_codes import AppError
from utils.error_monitor import ErrorMonitor, parse_origin


@pytest.fixture
def alert_manager():
    manager = MagicMock()
    manager.trigger = AsyncMock(return_value={"discord": True, "sms": True})
    return manager


@pytest.fixture
def monitor(alert_manager):
    return ErrorMonitor(alert_manager=alert_manager)


def _raise(error):
    try:
        raise error
    except Exception as caught:
        return caught


class TestTrack:
    """Test tracking and escalation."""

    @pytest.mark.asyncio
    async def test_returns_reference_id(self, monitor):
        error_id = await monitor.track(AppError("GAME_402"))
        assert error_id.startswith("ERR-")

    @pytest.mark.asyncio
    async def test_critical_code_triggers_alert(self, monitor, alert_manager):
        error = _raise(AppError("DB_201"))

        error_id = await monitor.track(error, {"route": "/api/users", "method": "GET"})

        alert_manager.trigger.assert_awaited_once()
        code, context = alert_manager.trigger.await_args.args
        assert code == "DB_201"
        assert context["error_id"] == error_id
        assert context["route"] == "/api/users"
        assert "_raise" in context["origin"]

    @pytest.mark.asyncio
    async def test_non_critical_code_does_not_alert(self, monitor, alert_manager):
        await monitor.track(AppError("AUTH_304"))
        alert_manager.trigger.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_explicit_code_overrides_error(self, monitor, alert_manager):
        await monitor.track(RuntimeError("disk on fire"), code="SER_101")
        assert alert_manager.trigger.await_args.args[0] == "SER_101"

    @pytest.mark.asyncio
    async def test_plain_exception_is_unknown(self, monitor, alert_manager):
        await monitor.track(ValueError("bad"))
        alert_manager.trigger.assert_not_awaited()


class TestParseOrigin:
    """Test traceback origin extraction."""

    def test_error_without_traceback(self):
        assert parse_origin(ValueError("never raised")) == "unknown-origin"

    def test_innermost_frame_is_reported(self):
        origin = parse_origin(_raise(KeyError("missing")))
        assert origin.endswith("in _raise")
        assert "test_error_monitor.py" in origin
