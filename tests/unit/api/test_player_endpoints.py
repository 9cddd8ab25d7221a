"""
Player API Endpoint Tests
"""

from unittest.mock import AsyncMock, patch

import pytest


def _create_player(client, headers, username="lucky_seven", email="lucky7@example.com", **extra):
    response = client.post(
        "/api/users",
        json={"username": username, "email": email, **extra},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestAuthentication:
    """Test bearer token and permission checks."""

    def test_missing_token_is_401(self, client):
        response = client.get("/api/users")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_unknown_token_is_401(self, client):
        response = client.get("/api/users", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_worker_without_permission_is_403(self, client, create_operator):
        _, token = create_operator("cashier_one", "FINANCE_WORKER")

        response = client.post(
            "/api/users",
            json={"username": "new_player", "email": "new@example.com"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Missing permission: user_management"

    def test_granted_permission_is_honoured(self, client, create_operator):
        _, token = create_operator("cashier_two", "FINANCE_WORKER", permissions={"user_management": True})

        _create_player(client, {"Authorization": f"Bearer {token}"})


class TestPlayers:
    """Test player CRUD."""

    def test_create_and_fetch(self, client, auth_headers):
        created = _create_player(client, auth_headers, subscribed_services=["api", "payment", "api"])

        assert created["status"] == "ACTIVE"
        assert created["balances"]["normal"] == 0.0
        assert created["subscribed_services"] == ["api", "payment"]

        fetched = client.get(f"/api/users/{created['id']}", headers=auth_headers)
        assert fetched.status_code == 200
        assert fetched.json()["username"] == "lucky_seven"

    @pytest.mark.parametrize("username,email", [
        ("lucky_seven", "other@example.com"),
        ("other_name", "LUCKY7@example.com"),
    ])
    def test_duplicate_username_or_email_is_409(self, client, auth_headers, username, email):
        _create_player(client, auth_headers)

        response = client.post("/api/users", json={"username": username, "email": email}, headers=auth_headers)
        assert response.status_code == 409

    def test_concurrent_duplicate_is_409(self, client, auth_headers):
        _create_player(client, auth_headers)

        # Another request inserted the same player after this one checked
        with patch("api.player_endpoints.find_duplicate_player", AsyncMock(return_value=None)):
            response = client.post(
                "/api/users", json={"username": "lucky_seven", "email": "other@example.com"}, headers=auth_headers
            )

        assert response.status_code == 409
        assert response.json()["detail"] == "Player with this username or email already exists"
        assert client.get("/api/users", headers=auth_headers).json()["total"] == 1

    def test_invalid_username_is_422(self, client, auth_headers):
        response = client.post("/api/users", json={"username": "a b", "email": "x@example.com"}, headers=auth_headers)
        assert response.status_code == 422

    def test_unknown_player_is_404(self, client, auth_headers):
        response = client.get("/api/users/00000000-0000-0000-0000-000000000000", headers=auth_headers)
        assert response.status_code == 404

    def test_list_filters_by_status_and_search(self, client, auth_headers):
        first = _create_player(client, auth_headers)
        _create_player(client, auth_headers, username="quiet_one", email="quiet@example.com")
        client.patch(f"/api/users/{first['id']}", json={"status": "SUSPENDED"}, headers=auth_headers)

        suspended = client.get("/api/users", params={"status": "SUSPENDED"}, headers=auth_headers).json()
        assert suspended["total"] == 1
        assert suspended["items"][0]["id"] == first["id"]

        searched = client.get("/api/users", params={"search": "QUIET"}, headers=auth_headers).json()
        assert [p["username"] for p in searched["items"]] == ["quiet_one"]

    def test_update_to_taken_email_is_409(self, client, auth_headers):
        first = _create_player(client, auth_headers)
        _create_player(client, auth_headers, username="second_one", email="second@example.com")

        response = client.patch(f"/api/users/{first['id']}", json={"email": "second@example.com"}, headers=auth_headers)
        assert response.status_code == 409

    def test_add_note(self, client, auth_headers):
        player = _create_player(client, auth_headers)

        response = client.post(f"/api/users/{player['id']}/notes", json={"text": "Called about bonus"}, headers=auth_headers)

        assert response.status_code == 201
        assert response.json()["notes"][0]["text"] == "Called about bonus"


class TestBalances:
    """Test manual balance adjustments."""

    def test_add_then_subtract(self, client, auth_headers):
        player = _create_player(client, auth_headers)
        url = f"/api/users/{player['id']}/balances"

        added = client.put(url, json={"balance_type": "bonus", "operation": "add", "amount": 50}, headers=auth_headers)
        assert added.status_code == 200
        assert added.json()["balances"]["bonus"] == 50.0

        subtracted = client.put(url, json={"balance_type": "bonus", "operation": "subtract", "amount": 20}, headers=auth_headers)
        assert subtracted.json()["balances"]["bonus"] == 30.0

        history = client.get(f"/api/users/{player['id']}/balance-history", headers=auth_headers).json()
        assert len(history) == 2
        assert {entry["operation"] for entry in history} == {"add", "subtract"}

    def test_subtract_past_zero_is_rejected(self, client, auth_headers):
        player = _create_player(client, auth_headers)

        response = client.put(
            f"/api/users/{player['id']}/balances",
            json={"operation": "subtract", "amount": 5},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "GAME_402"
        balances = client.get(f"/api/users/{player['id']}", headers=auth_headers).json()["balances"]
        assert balances["normal"] == 0.0

    @pytest.mark.parametrize("payload", [
        {"operation": "add", "amount": 0},
        {"operation": "add", "amount": -5},
        {"operation": "add", "amount": 5, "balance_type": "chips"},
        {"operation": "multiply", "amount": 5},
    ])
    def test_invalid_adjustment_is_422(self, client, auth_headers, payload):
        player = _create_player(client, auth_headers)

        response = client.put(f"/api/users/{player['id']}/balances", json=payload, headers=auth_headers)
        assert response.status_code == 422

    @pytest.mark.parametrize("raw_amount", ["1e400", "NaN", "Infinity"])
    def test_non_finite_amount_is_422(self, client, auth_headers, raw_amount):
        player = _create_player(client, auth_headers)
        url = f"/api/users/{player['id']}/balances"

        response = client.put(
            url,
            content=f'{{"operation": "add", "amount": {raw_amount}}}',
            headers={**auth_headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 422
        balances = client.get(f"/api/users/{player['id']}", headers=auth_headers).json()["balances"]
        assert balances["normal"] == 0.0
        assert client.get(f"/api/users/{player['id']}/balance-history", headers=auth_headers).json() == []

    def test_set_to_zero_is_allowed(self, client, auth_headers):
        player = _create_player(client, auth_headers)

        response = client.put(
            f"/api/users/{player['id']}/balances",
            json={"operation": "set", "amount": 0},
            headers=auth_headers,
        )
        assert response.status_code == 200
