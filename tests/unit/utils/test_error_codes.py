"""
Tests for the error catalog and HTTP status mapping.
"""

import pytest

from utils.error_codes import (
    ERROR_CATALOG, AppError, get_error_by_code, http_status_for, is_critical
)


@pytest.mark.parametrize("code,status", [
    ("SER_101", 500),
    ("DB_201", 503),
    ("AUTH_305", 401),
    ("GAME_402", 400),
    ("PAY_501", 402),
    ("CONFIG_5001", 500),
    ("USER_4001", 400),
    ("TX_3001", 402),
    ("WHATEVER_1", 500),
])
def test_prefix_maps_to_http_status(code, status):
    assert http_status_for(code) == status


def test_unknown_code_falls_back():
    info = get_error_by_code("NOPE_999")
    assert info.code == "UNKNOWN"
    assert info.severity == "MEDIUM"
    assert get_error_by_code(None).code == "UNKNOWN"


def test_catalog_entries_are_complete():
    for code, info in ERROR_CATALOG.items():
        assert info.code == code
        assert info.severity in {"CRITICAL", "HIGH", "MEDIUM", "LOW"}
        assert info.message and info.solution


def test_unhandled_server_error_entry():
    info = get_error_by_code("SER_100")
    assert info.severity == "HIGH"


def test_session_expiry_is_not_logged():
    assert get_error_by_code("AUTH_304").log is False


def test_is_critical():
    assert is_critical("DB_201")
    assert not is_critical("GAME_402")
    assert not is_critical("NOPE")


def test_app_error_defaults_to_catalog_message():
    error = AppError("GAME_402")
    assert error.message == "Negative balance allowed"
    assert error.status_code == 400
    assert error.metadata == {}

    custom = AppError("PAY_503", "Ledger is off", {"batch": 7})
    assert str(custom) == "Ledger is off"
    assert custom.status_code == 402
    assert custom.metadata == {"batch": 7}
