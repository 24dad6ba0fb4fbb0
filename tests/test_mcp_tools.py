"""Per-tool MCP integration tests verifying minified response shapes.

Tests every MCP server tool for correct minification and schema
validation. The HTTP oracle is replaced by a scripted oracle through
the server's _make_oracle factory, so no network is used.

Run:
    pytest tests/test_mcp_tools.py -v
"""

from __future__ import annotations

import importlib.util
import json
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from chess_session.errors import TransportFailure

# Add project root so imports resolve
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT))

# Import server module from hyphenated directory via importlib
_server_path = _PROJECT_ROOT / "mcp-server" / "server.py"
_spec = importlib.util.spec_from_file_location("mcp_server_tools_test", _server_path)
_server = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(_server)

_games = _server._games

# Server tool functions
new_game = _server.new_game
get_board = _server.get_board
make_move = _server.make_move
request_ai_move = _server.request_ai_move
submit_ai_move = _server.submit_ai_move
get_legal_moves = _server.get_legal_moves
reset_game = _server.reset_game
evaluate_fen = _server.evaluate_fen

# Import response schemas for validation
sys.path.insert(0, str(_PROJECT_ROOT / "mcp-server"))
from response_schemas import (  # noqa: E402
    ERROR_SCHEMA,
    EVALUATION_SCHEMA,
    GAME_STATE_SCHEMA,
    _moves_to_pgn_string,
    minify_game_state,
    validate_response,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# Fields that must NOT be in minified GameState
_REMOVED_FIELDS = {"board", "legal_moves", "move_log"}


def _assert_minified_game_state(response: dict) -> None:
    """Assert a response is a properly minified GameState."""
    assert "error" not in response, response.get("error")
    errors = validate_response(response, GAME_STATE_SCHEMA)
    assert errors == [], errors
    for field in _REMOVED_FIELDS:
        assert field not in response, f"{field} should be removed"
    json.dumps(response)


def _assert_error(response: dict, outcome: str | None = None) -> None:
    assert validate_response(response, ERROR_SCHEMA) == []
    if outcome is not None:
        assert response["outcome"] == outcome


@pytest.fixture(autouse=True)
def _clear_games():
    _games.clear()
    yield
    _games.clear()


@pytest.fixture
def scripted_oracle(fake_oracle):
    """Patch the server's oracle factory; returns a setter for the replies."""
    holder = {}

    def _install(*replies):
        holder["oracle"] = fake_oracle(*replies)
        return holder["oracle"]

    with patch.object(_server, "_make_oracle", side_effect=lambda: holder["oracle"]):
        yield _install


# ---------------------------------------------------------------------------
# new_game / get_board
# ---------------------------------------------------------------------------


class TestNewGame:

    def test_default(self):
        state = new_game()
        _assert_minified_game_state(state)
        assert state["human_side"] == "white"
        assert state["phase"] == "awaiting_human"
        assert state["move_list"] == ""
        assert state["ply"] == 0
        assert state["legal_moves_count"] == 20
        assert state["eval_display"] == "0.00"
        assert state["game_id"] in _games

    def test_black(self):
        state = new_game(player_color="black")
        _assert_minified_game_state(state)
        assert state["phase"] == "awaiting_oracle"

    def test_invalid_color(self):
        _assert_error(new_game(player_color="green"))
        assert _games == {}

    def test_custom_fen(self):
        state = new_game(starting_fen="8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
        _assert_minified_game_state(state)
        assert state["fen"] == "8/4P3/8/8/8/8/k7/4K3 w - - 0 1"

    @pytest.mark.parametrize("fen", ["bogus", "8/8/8/8/8/8/8/4K3 w - - 0 1"])
    def test_invalid_fen(self, fen):
        response = new_game(starting_fen=fen)
        _assert_error(response)
        assert response["error"].startswith("Invalid FEN")

    def test_get_board(self):
        game_id = new_game()["game_id"]
        state = get_board(game_id)
        _assert_minified_game_state(state)
        assert state["game_id"] == game_id

    def test_get_board_unknown(self):
        _assert_error(get_board("nope"))


# ---------------------------------------------------------------------------
# make_move / submit_ai_move
# ---------------------------------------------------------------------------


class TestMoves:

    def test_make_move(self):
        game_id = new_game()["game_id"]
        state = make_move(game_id, "e2e4")
        _assert_minified_game_state(state)
        assert state["move_list"] == "1.e4"
        assert state["last_move"] == {"from": "e2", "to": "e4"}
        assert state["phase"] == "awaiting_oracle"

    def test_make_move_uppercase(self):
        game_id = new_game()["game_id"]
        _assert_minified_game_state(make_move(game_id, " E2E4 "))

    def test_make_move_bad_format(self):
        game_id = new_game()["game_id"]
        response = make_move(game_id, "e4")
        _assert_error(response)
        assert "Invalid move format" in response["error"]

    def test_make_move_illegal(self):
        game_id = new_game()["game_id"]
        _assert_error(make_move(game_id, "e2e5"), "illegal")
        assert get_board(game_id)["ply"] == 0

    def test_make_move_out_of_turn(self):
        game_id = new_game()["game_id"]
        make_move(game_id, "e2e4")
        _assert_error(make_move(game_id, "d2d4"), "rejected")

    def test_make_move_promotion(self):
        game_id = new_game(starting_fen="8/4P3/8/8/8/8/k7/4K3 w - - 0 1")["game_id"]
        state = make_move(game_id, "e7e8n")
        assert state["move_list"] == "1.e8=N"

    def test_submit_ai_move(self):
        game_id = new_game()["game_id"]
        make_move(game_id, "e2e4")
        state = submit_ai_move(game_id, "e7e5")
        _assert_minified_game_state(state)
        assert state["move_list"] == "1.e4 e5"
        assert state["phase"] == "awaiting_human"

    def test_submit_ai_move_malformed(self):
        game_id = new_game()["game_id"]
        make_move(game_id, "e2e4")
        _assert_error(submit_ai_move(game_id, "Nf6"), "malformed_reply")
        assert get_board(game_id)["phase"] == "awaiting_oracle"

    def test_moves_after_game_over(self):
        game_id = new_game()["game_id"]
        make_move(game_id, "f2f3")
        submit_ai_move(game_id, "e7e5")
        make_move(game_id, "g2g4")
        state = submit_ai_move(game_id, "d8h4")
        assert state["is_game_over"] is True
        assert state["status"] == "Checkmate. Black wins."
        assert state["eval_display"] == "-M"
        response = make_move(game_id, "a2a3")
        _assert_error(response, "game_over")
        assert response["error"] == "Game is already over."

    def test_unknown_game(self):
        _assert_error(make_move("nope", "e2e4"))
        _assert_error(submit_ai_move("nope", "e7e5"))


# ---------------------------------------------------------------------------
# request_ai_move
# ---------------------------------------------------------------------------


class TestRequestAiMove:

    def test_applies_oracle_reply(self, scripted_oracle):
        oracle = scripted_oracle("e7e5")
        game_id = new_game()["game_id"]
        make_move(game_id, "e2e4")
        state = request_ai_move(game_id)
        _assert_minified_game_state(state)
        assert state["move_list"] == "1.e4 e5"
        assert oracle.requests[0].last_move == {"from": "e2", "to": "e4"}

    def test_oracle_created_once_per_game(self, scripted_oracle):
        scripted_oracle("e7e5", "b8c6")
        game_id = new_game()["game_id"]
        make_move(game_id, "e2e4")
        request_ai_move(game_id)
        make_move(game_id, "g1f3")
        request_ai_move(game_id)
        assert _server._make_oracle.call_count == 1

    def test_transport_failure(self, scripted_oracle):
        scripted_oracle(TransportFailure("Oracle returned HTTP 503"))
        game_id = new_game()["game_id"]
        make_move(game_id, "e2e4")
        response = request_ai_move(game_id)
        _assert_error(response, "transport_failure")
        assert "503" in response["error"]
        assert get_board(game_id)["phase"] == "awaiting_oracle"

    def test_illegal_reply(self, scripted_oracle):
        scripted_oracle("e2e4")
        game_id = new_game()["game_id"]
        make_move(game_id, "e2e4")
        _assert_error(request_ai_move(game_id), "illegal")

    def test_not_oracle_turn(self, scripted_oracle):
        oracle = scripted_oracle()
        game_id = new_game()["game_id"]
        _assert_error(request_ai_move(game_id), "rejected")
        assert oracle.requests == []

    def test_human_black_oracle_opens(self, scripted_oracle):
        scripted_oracle("d2d4")
        game_id = new_game(player_color="black")["game_id"]
        state = request_ai_move(game_id)
        assert state["move_list"] == "1.d4"
        assert state["phase"] == "awaiting_human"


# ---------------------------------------------------------------------------
# get_legal_moves / reset_game / evaluate_fen
# ---------------------------------------------------------------------------


class TestOtherTools:

    def test_legal_moves(self):
        game_id = new_game()["game_id"]
        response = get_legal_moves(game_id)
        assert len(response["legal_moves"]) == 20
        assert response["square"] is None

    def test_legal_moves_filtered(self):
        game_id = new_game()["game_id"]
        response = get_legal_moves(game_id, square="G1")
        assert sorted(response["legal_moves"]) == ["g1f3", "g1h3"]

    def test_legal_moves_unknown(self):
        _assert_error(get_legal_moves("nope"))

    def test_reset(self):
        game_id = new_game()["game_id"]
        make_move(game_id, "e2e4")
        submit_ai_move(game_id, "e7e5")
        state = reset_game(game_id)
        _assert_minified_game_state(state)
        assert state["ply"] == 0
        assert state["last_move"] is None

    def test_reset_unknown(self):
        _assert_error(reset_game("nope"))

    def test_evaluate_start(self):
        response = evaluate_fen("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1")
        assert validate_response(response, EVALUATION_SCHEMA) == []
        assert response["score_cp"] == 0
        assert response["display"] == "0.00"
        assert response["legal_moves_count"] == 20

    def test_evaluate_mate(self):
        response = evaluate_fen("R5k1/5ppp/8/8/8/8/8/6K1 b - - 1 1")
        assert response["display"] == "+M"
        assert response["legal_moves_count"] == 0

    def test_evaluate_invalid(self):
        _assert_error(evaluate_fen("rnbqkbnr/pppppppp/9/8/8/8/PPPPPPPP/RNBQKBNR w"))

    def test_evaluate_unreadable_castling(self):
        response = evaluate_fen("4k3/8/8/8/8/8/8/4K3 w xyz - 0 1")
        _assert_error(response)
        assert response["error"].startswith("Invalid FEN")

    def test_new_game_unreadable_castling(self):
        _assert_error(new_game(starting_fen="4k3/8/8/8/8/8/8/4K3 w xyz - 0 1"))
        assert _games == {}


# ---------------------------------------------------------------------------
# Minification helpers
# ---------------------------------------------------------------------------


class TestMinification:

    def test_pgn_string(self):
        assert _moves_to_pgn_string([]) == ""
        assert _moves_to_pgn_string(["e4", "e5", "Nf3"]) == "1.e4 e5 2.Nf3"

    def test_pgn_string_black_first(self):
        assert _moves_to_pgn_string(["e5", "Nf3", "Nc6"], black_first=True) == "1...e5 2.Nf3 Nc6"

    def test_minify_drops_board(self):
        state = minify_game_state({
            "game_id": "g",
            "board": [[None] * 8] * 8,
            "move_log": [{"san": "e4", "side": "white"}],
            "legal_moves": ["e7e5"],
        })
        assert "board" not in state
        assert state["move_list"] == "1.e4"
        assert state["legal_moves_count"] == 1

    def test_validation_gated_by_env(self, monkeypatch):
        monkeypatch.delenv("CHESS_SESSION_VALIDATE")
        assert validate_response({}, GAME_STATE_SCHEMA) == []
