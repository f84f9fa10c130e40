"""Tests for the FastAPI ClassicXO interface."""

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from classicxo import ui
from classicxo.storage import SnapshotStore
from classicxo.ui import app


client = TestClient(app)
ui.AI_THINK_DELAY = (0.0, 0.0)


@pytest.fixture(autouse=True)
def isolated_store(tmp_path, monkeypatch):
    store = SnapshotStore(tmp_path / "classicxo-data.json")
    monkeypatch.setattr(ui, "STORE", store)
    ui.GAMES.clear()
    return store


def new_game(**body):
    response = client.post("/api/game", json=body)
    assert response.status_code == 200
    return response.json()


def move(game_id, cell_index):
    return client.post(f"/api/game/{game_id}/move", json={"cellIndex": cell_index})


def test_create_game_uses_stored_preferences():
    payload = new_game()
    assert payload["mode"] == "pvp"
    assert payload["difficulty"] == "medium"
    assert payload["board"] == [""] * 9
    assert payload["currentPlayer"] == "X"
    assert payload["status"] == "in_progress"
    assert payload["availableMoves"] == list(range(9))
    assert payload["moveLog"] == []


def test_pvp_win_is_scored_once():
    game_id = new_game(mode="pvp")["id"]
    for cell in (0, 3, 1, 4):
        assert move(game_id, cell).status_code == 200

    final = move(game_id, 2).json()
    assert final["status"] == "win"
    assert final["winner"] == "X"
    assert final["winningLine"] == [0, 1, 2]
    assert final["availableMoves"] == []
    assert final["lastMove"] == {"player": "X", "cellIndex": 2}

    late = move(game_id, 8)
    assert late.status_code == 400
    assert late.json()["code"] == "game_already_over"

    stats = client.get("/api/profile").json()["gameStats"]
    assert stats == {"playerX": 1, "playerO": 0, "draws": 0}


def test_pvp_draw_is_scored():
    game_id = new_game(mode="pvp")["id"]
    for cell in (0, 1, 2, 4, 3, 5, 7, 6, 8):
        response = move(game_id, cell)
        assert response.status_code == 200
    assert response.json()["status"] == "draw"
    assert response.json()["winner"] is None
    assert client.get("/api/profile").json()["gameStats"]["draws"] == 1


def test_occupied_cell_rejected():
    game_id = new_game(mode="pvp")["id"]
    assert move(game_id, 0).status_code == 200

    duplicate = move(game_id, 0)
    assert duplicate.status_code == 400
    assert duplicate.json()["code"] == "cell_occupied"
    assert duplicate.json()["detail"]

    state = client.get(f"/api/game/{game_id}").json()
    assert state["currentPlayer"] == "O"
    assert len(state["moveLog"]) == 1


def test_out_of_range_cell_rejected():
    game_id = new_game(mode="pvp")["id"]
    response = move(game_id, 9)
    assert response.status_code == 400
    assert response.json()["code"] == "out_of_range"


def test_ai_replies_after_human_move():
    game_id = new_game(mode="ai", difficulty="hard")["id"]

    state = move(game_id, 0).json()
    assert state["board"][0] == "X"
    assert state["currentPlayer"] == "O"
    assert state["aiPending"] is True

    follow_up = client.get(f"/api/game/{game_id}").json()
    assert follow_up["aiPending"] is False
    assert follow_up["currentPlayer"] == "X"
    assert follow_up["moveLog"][-1] == {"player": "O", "cellIndex": 4}
    assert follow_up["board"][4] == "O"


def test_move_rejected_while_ai_is_thinking():
    game_id = new_game(mode="ai", difficulty="easy")["id"]
    ui.GAMES[game_id].ai_pending = True

    response = move(game_id, 0)
    assert response.status_code == 400
    assert ui.GAMES[game_id].session.board[0] == " "


def test_new_game_choice_becomes_preference():
    new_game(mode="ai", difficulty="easy")

    profile = client.get("/api/profile").json()
    assert profile["gameMode"] == "ai"
    assert profile["aiDifficulty"] == "easy"

    again = new_game()
    assert again["mode"] == "ai"
    assert again["difficulty"] == "easy"


def test_rejects_unknown_difficulty():
    response = client.post("/api/game", json={"difficulty": "impossible"})
    assert response.status_code == 422


def test_update_settings_merges_fields():
    response = client.put("/api/settings", json={"theme": "dark", "volume": 20})
    assert response.status_code == 200
    settings = response.json()["settings"]
    assert settings == {
        "soundEnabled": True,
        "musicEnabled": False,
        "volume": 20,
        "theme": "dark",
    }

    client.put("/api/settings", json={"soundEnabled": False})
    settings = client.get("/api/profile").json()["settings"]
    assert settings["soundEnabled"] is False
    assert settings["theme"] == "dark"


@pytest.mark.parametrize("body", [{"volume": 150}, {"theme": "sepia"}])
def test_update_settings_validates(body):
    response = client.put("/api/settings", json=body)
    assert response.status_code == 422


def test_reset_scores(isolated_store):
    game_id = new_game(mode="pvp")["id"]
    for cell in (0, 3, 1, 4, 2):
        move(game_id, cell)
    assert client.get("/api/profile").json()["gameStats"]["playerX"] == 1

    response = client.post("/api/scores/reset")
    assert response.status_code == 200
    assert response.json()["gameStats"] == {"playerX": 0, "playerO": 0, "draws": 0}
    assert isolated_store.load().stats.x_wins == 0


def test_missing_game_returns_404():
    assert client.get("/api/game/missing").status_code == 404
    assert move("missing", 0).status_code == 404


def test_index_serves_page():
    response = client.get("/")
    assert response.status_code == 200
    assert "ClassicXO" in response.text


def test_idle_games_are_dropped_when_a_new_game_starts():
    stale_id = new_game(mode="pvp")["id"]
    ui.GAMES[stale_id].touched_at = time.time() - ui.GAME_TTL_SECONDS - 1

    fresh_id = new_game(mode="pvp")["id"]

    assert stale_id not in ui.GAMES
    assert fresh_id in ui.GAMES
    assert client.get(f"/api/game/{stale_id}").status_code == 404


def test_game_waiting_on_ai_survives_cleanup():
    game_id = new_game(mode="ai", difficulty="easy")["id"]
    entry = ui.GAMES[game_id]
    entry.ai_pending = True
    entry.touched_at = time.time() - ui.GAME_TTL_SECONDS - 1

    new_game(mode="pvp")

    assert game_id in ui.GAMES


def test_reading_a_game_keeps_it_alive():
    game_id = new_game(mode="pvp")["id"]
    old = time.time() - ui.GAME_TTL_SECONDS + 5
    ui.GAMES[game_id].touched_at = old

    assert client.get(f"/api/game/{game_id}").status_code == 200
    assert ui.GAMES[game_id].touched_at > old

    new_game(mode="pvp")
    assert game_id in ui.GAMES


def _script_section(page, start, end):
    return page[page.index(start) : page.index(end)]


def test_page_ignores_replies_for_replaced_games():
    page = client.get("/").text
    stale_guard = "if (gameState?.id !== id) return;"

    poll = _script_section(page, "async function pollAiState", "async function newGame")
    send = _script_section(page, "async function sendMove", "// ---- settings ----")
    start = _script_section(page, "async function newGame", "async function sendMove")

    assert stale_guard in poll
    assert stale_guard in send
    assert "if (request !== newGameRequest) return;" in start
