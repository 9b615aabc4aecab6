"""
Tests for the HTTP host around the game session.
"""
import pytest
from fastapi.testclient import TestClient

import api
from session import GameSession


@pytest.fixture(autouse=True)
def clean_host():
    api.sessions.clear()
    api.limiter.reset()
    yield
    api.sessions.clear()


@pytest.fixture
def client():
    return TestClient(api.app)


@pytest.fixture
def known_game(scripted_rng):
    """Registers a session with a predictable board and spawn sequence."""
    game = GameSession([[2, 2, 0, 0], [0] * 4, [0] * 4, [0] * 4], rng=scripted_rng)
    api.sessions["known"] = game
    return game


class TestNewGame:
    def test_defaults(self, client):
        response = client.post("/game/new", json={})
        assert response.status_code == 200
        data = response.json()
        assert data["board_size"] == 4
        assert data["score"] == 0
        assert data["undo_remaining"] == 3
        assert data["empty_cells"] == 14
        assert data["session_id"] in api.sessions

    def test_custom_settings(self, client):
        response = client.post("/game/new", json={"size": 5, "max_undo": 1, "win_tile": 64, "best_score": 300})
        data = response.json()
        assert data["board_size"] == 5
        assert data["undo_remaining"] == 1
        assert data["win_tile"] == 64
        assert data["best_score"] == 300

    @pytest.mark.parametrize("settings", [{"size": 1}, {"win_tile": 0}, {"max_undo": -1}])
    def test_invalid_settings(self, client, settings):
        assert client.post("/game/new", json=settings).status_code == 422


class TestPlay:
    def test_get_state(self, client, known_game):
        data = client.get("/game/known").json()
        assert data["board"][0] == [2, 2, 0, 0]
        assert set(data["legal_moves"]) == {"left", "right", "down"}

    def test_unknown_session(self, client):
        assert client.get("/game/missing").status_code == 404
        assert client.post("/game/missing/move", json={"direction": "left"}).status_code == 404
        assert client.post("/game/missing/undo").status_code == 404

    def test_move(self, client, known_game):
        data = client.post("/game/known/move", json={"direction": "left"}).json()
        assert data["success"] is True
        assert data["failure"] is None
        assert data["board"][0] == [4, 2, 0, 0]
        assert data["score"] == 4

    def test_no_op_move(self, client, known_game):
        client.post("/game/known/move", json={"direction": "left"})
        data = client.post("/game/known/move", json={"direction": "up"}).json()
        assert data["success"] is False
        assert data["failure"] == "no_op_move"
        assert data["message"]
        assert data["score"] == 4

    def test_bad_direction(self, client, known_game):
        assert client.post("/game/known/move", json={"direction": "sideways"}).status_code == 422

    def test_undo(self, client, known_game):
        client.post("/game/known/move", json={"direction": "left"})
        data = client.post("/game/known/undo").json()
        assert data["success"] is True
        assert data["board"][0] == [2, 2, 0, 0]
        assert data["score"] == 0
        assert data["best_score"] == 4
        assert data["undo_remaining"] == 2

    def test_undo_without_history(self, client, known_game):
        data = client.post("/game/known/undo").json()
        assert data["success"] is False
        assert data["failure"] == "undo_exhausted"

    def test_win_message_only_on_winning_move(self, client, scripted_rng):
        grid = [[1024, 1024, 0, 0], [0] * 4, [0] * 4, [0] * 4]
        api.sessions["winner"] = GameSession(grid, rng=scripted_rng)
        first = client.post("/game/winner/move", json={"direction": "left"}).json()
        assert first["is_won"] is True
        assert first["message"] == "Congratulations! You won!"

        second = client.post("/game/winner/move", json={"direction": "down"}).json()
        assert second["success"] is True
        assert second["is_won"] is True
        assert second["message"] is None

    def test_terminal_session(self, client, blocked_grid):
        api.sessions["done"] = GameSession(blocked_grid)
        data = client.post("/game/done/move", json={"direction": "left"}).json()
        assert data["success"] is False
        assert data["failure"] == "session_terminal"
        assert data["is_over"] is True


class TestSnapshots:
    def test_export_and_restore(self, client, known_game):
        client.post("/game/known/move", json={"direction": "left"})
        record = client.get("/game/known/snapshot").json()
        assert record["score"] == 4
        assert len(record["history"]) == 1

        response = client.post("/game/restore", json=record)
        assert response.status_code == 200
        data = response.json()
        assert data["session_id"] != "known"
        assert data["board"] == known_game.grid
        assert data["score"] == 4

    def test_restore_rejects_bad_record(self, client):
        response = client.post("/game/restore", json={"grid": [[3, 0], [0, 0]]})
        assert response.status_code == 400
        # The validation message names the offending fields.
        assert "grid" in response.json()["detail"]
        assert "score" in response.json()["detail"]
        assert api.sessions == {}


class TestRegistry:
    def test_registry_is_capped(self, client, monkeypatch):
        monkeypatch.setattr(api, "MAX_SESSIONS", 3)
        ids = [client.post("/game/new", json={}).json()["session_id"] for _ in range(5)]
        assert len(api.sessions) == 3
        assert list(api.sessions) == ids[2:]
        assert client.get(f"/game/{ids[0]}").status_code == 404

    def test_recently_used_games_survive_eviction(self, client, monkeypatch):
        monkeypatch.setattr(api, "MAX_SESSIONS", 2)
        first = client.post("/game/new", json={}).json()["session_id"]
        second = client.post("/game/new", json={}).json()["session_id"]
        assert client.get(f"/game/{first}").status_code == 200
        third = client.post("/game/new", json={}).json()["session_id"]
        assert set(api.sessions) == {first, third}
        assert second not in api.sessions

    def test_restore_counts_against_the_cap(self, client, monkeypatch, known_game):
        monkeypatch.setattr(api, "MAX_SESSIONS", 1)
        record = client.get("/game/known/snapshot").json()
        restored = client.post("/game/restore", json=record).json()["session_id"]
        assert list(api.sessions) == [restored]

    def test_delete_game(self, client, known_game):
        response = client.delete("/game/known")
        assert response.status_code == 200
        assert response.json() == {"session_id": "known", "deleted": True}
        assert "known" not in api.sessions
        assert client.delete("/game/known").status_code == 404
