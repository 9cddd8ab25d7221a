"""
Game Catalog API Endpoint Tests
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

GAME = {
    "name": "Book of Odin",
    "category": "slot",
    "provider": "Asgard Games",
    "rtp": 96.2,
    "volatility": "high",
    "features": ["free_spins", "expanding_symbols"],
}


def _create_game(client, headers, **overrides):
    response = client.post("/api/games", json={**GAME, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestCatalogReads:
    """Test public catalog endpoints."""

    def test_lists_only_active_games_sorted_by_name(self, client, auth_headers):
        _create_game(client, auth_headers, name="Zeus Reels")
        _create_game(client, auth_headers)
        _create_game(client, auth_headers, name="Hidden Table", category="table", is_active=False)

        names = [game["name"] for game in client.get("/api/games").json()]
        assert names == ["Book of Odin", "Zeus Reels"]

    def test_filter_by_category(self, client, auth_headers):
        _create_game(client, auth_headers)
        _create_game(client, auth_headers, name="Blackjack Pro", category="table")

        games = client.get("/api/games/category/table").json()
        assert [game["name"] for game in games] == ["Blackjack Pro"]

    def test_unknown_game_is_404(self, client):
        assert client.get("/api/games/00000000-0000-0000-0000-000000000000").status_code == 404


class TestCatalogWrites:
    """Test catalog changes."""

    def test_defaults_are_applied(self, client, auth_headers):
        game = _create_game(client, auth_headers)

        assert game["min_bet"] == 0.10
        assert game["max_bet"] == 1000.0
        assert game["is_active"] is True

    def test_duplicate_name_is_409(self, client, auth_headers):
        _create_game(client, auth_headers)

        response = client.post("/api/games", json=GAME, headers=auth_headers)
        assert response.status_code == 409

    @pytest.mark.parametrize("overrides", [
        {"rtp": 84.9},
        {"rtp": 100},
        {"min_bet": 10, "max_bet": 5},
        {"category": "lottery"},
    ])
    def test_invalid_game_is_422(self, client, auth_headers, overrides):
        response = client.post("/api/games", json={**GAME, **overrides}, headers=auth_headers)
        assert response.status_code == 422

    def test_infinite_max_bet_is_422(self, client, auth_headers):
        body = json.dumps(GAME)[:-1] + ', "max_bet": 1e400}'

        response = client.post(
            "/api/games", content=body, headers={**auth_headers, "Content-Type": "application/json"}
        )
        assert response.status_code == 422

    def test_concurrent_duplicate_name_is_409(self, client, auth_headers):
        _create_game(client, auth_headers)

        with patch("api.game_endpoints.ensure_name_free", AsyncMock()):
            response = client.post("/api/games", json=GAME, headers=auth_headers)

        assert response.status_code == 409
        assert len(client.get("/api/games").json()) == 1

    def test_update_and_delete(self, client, auth_headers):
        game = _create_game(client, auth_headers)

        updated = client.put(f"/api/games/{game['id']}", json={"rtp": 97.1}, headers=auth_headers)
        assert updated.status_code == 200
        assert updated.json()["rtp"] == 97.1

        assert client.delete(f"/api/games/{game['id']}", headers=auth_headers).status_code == 204
        assert client.get(f"/api/games/{game['id']}").status_code == 404

    def test_update_below_min_bet_is_422(self, client, auth_headers):
        game = _create_game(client, auth_headers, min_bet=1)

        response = client.put(f"/api/games/{game['id']}", json={"max_bet": 0.5}, headers=auth_headers)
        assert response.status_code == 422

    def test_writes_need_game_management(self, client, create_operator):
        _, token = create_operator("marketer", "MARKETING_WORKER")

        response = client.post("/api/games", json=GAME, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 403
