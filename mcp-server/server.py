"""MCP server for the chess session core.

Exposes human-vs-oracle chess sessions as FastMCP tools. Sessions are
stored in memory keyed by UUID. The oracle side can be played either by
the configured HTTP move oracle (request_ai_move) or by the MCP client
itself (submit_ai_move).
"""

from __future__ import annotations

import logging
import sys
import uuid
from dataclasses import asdict
from pathlib import Path

# Add project root and mcp-server dir to path for imports
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_MCP_SERVER_DIR = Path(__file__).resolve().parent
sys.path.insert(0, str(_PROJECT_ROOT))
sys.path.insert(0, str(_MCP_SERVER_DIR))

from mcp.server.fastmcp import FastMCP

from chess_session.codec import decode
from chess_session.config import OracleSettings
from chess_session.errors import MalformedPosition
from chess_session.evaluator import format_score, material, score
from chess_session.models import MoveOutcome, Side
from chess_session.oracle import HttpMoveOracle, MoveOracle, play_oracle_turn
from chess_session.rules import PythonChessRules
from chess_session.session import GameSession

from response_schemas import minify_evaluation, minify_game_state  # noqa: E402

_LOGGER = logging.getLogger(__name__)

mcp = FastMCP("chess-session")

# In-memory session store: game_id -> {session, oracle}
_games: dict[str, dict] = {}

_rules = PythonChessRules()


def _make_oracle() -> MoveOracle:
    """Build the oracle used by request_ai_move from the environment."""
    return HttpMoveOracle.from_settings(OracleSettings.from_env())


def _get_game(game_id: str) -> dict | None:
    """Look up a game by ID.

    Args:
        game_id: UUID string.

    Returns:
        Game record dict or None if not found.
    """
    return _games.get(game_id)


def _state(game_id: str, session: GameSession) -> dict:
    state = asdict(session.snapshot())
    state["game_id"] = game_id
    return minify_game_state(state)


def _move_error(result, move: str) -> dict:
    if result.outcome is MoveOutcome.GAME_OVER:
        return {"error": "Game is already over.", "outcome": result.outcome.value}
    return {
        "error": f"Move {move} not applied: {result.reason}",
        "outcome": result.outcome.value,
    }


# ---------------------------------------------------------------------------
# Game tools
# ---------------------------------------------------------------------------


@mcp.tool()
def new_game(player_color: str = "white", starting_fen: str | None = None) -> dict:
    """Start a new game against the move oracle.

    Args:
        player_color: 'white' or 'black'. Default 'white'.
        starting_fen: Optional custom starting position FEN.

    Returns:
        Game state dict for the initial position.
    """
    try:
        human_side = Side(player_color)
    except ValueError:
        return {"error": f"Invalid player color: {player_color}"}

    try:
        session = GameSession(rules=_rules, human_side=human_side, fen=starting_fen)
    except MalformedPosition as exc:
        return {"error": f"Invalid FEN: {exc}"}

    game_id = str(uuid.uuid4())
    _games[game_id] = {"session": session, "oracle": None}
    _LOGGER.info("Created game %s (human plays %s)", game_id, human_side.value)
    return _state(game_id, session)


@mcp.tool()
def get_board(game_id: str) -> dict:
    """Get the current state of a game.

    Args:
        game_id: UUID of the game.

    Returns:
        Game state dict with position, status, phase and move list.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}
    return _state(game_id, game["session"])


@mcp.tool()
def make_move(game_id: str, move: str) -> dict:
    """Play the human's move in uci notation.

    Args:
        game_id: UUID of the game.
        move: Move such as 'e2e4', or 'e7e8q' for a promotion.

    Returns:
        Updated game state, or an error dict if the move was not applied.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    session: GameSession = game["session"]
    text = move.strip().lower()
    if len(text) not in (4, 5):
        return {"error": f"Invalid move format: {move}. Use uci, e.g. e2e4."}

    promotion = text[4] if len(text) == 5 else None
    result = session.submit_human_move(text[:2], text[2:4], promotion)
    if not result.applied:
        return _move_error(result, move)
    return _state(game_id, session)


@mcp.tool()
def request_ai_move(game_id: str) -> dict:
    """Ask the configured move oracle for its move and apply it.

    Args:
        game_id: UUID of the game.

    Returns:
        Updated game state, or an error dict with the outcome
        (transport_failure, malformed_reply, illegal). The game keeps
        waiting for the oracle after a failure.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    if game["oracle"] is None:
        game["oracle"] = _make_oracle()

    session: GameSession = game["session"]
    result = play_oracle_turn(session, game["oracle"])
    if not result.applied:
        return _move_error(result, "from oracle")
    return _state(game_id, session)


@mcp.tool()
def submit_ai_move(game_id: str, move: str) -> dict:
    """Play the oracle side's move directly (the caller acts as oracle).

    Args:
        game_id: UUID of the game.
        move: uci move such as 'e7e5'.

    Returns:
        Updated game state, or an error dict with the outcome.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    session: GameSession = game["session"]
    result = session.apply_oracle_move(move)
    if not result.applied:
        return _move_error(result, move)
    return _state(game_id, session)


@mcp.tool()
def get_legal_moves(game_id: str, square: str | None = None) -> dict:
    """List legal moves in uci, optionally filtered by source square.

    Args:
        game_id: UUID of the game.
        square: Optional square name (e.g., 'e2') to filter moves from.

    Returns:
        Dict with the list of legal moves.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    moves = game["session"].legal_moves_uci()
    if square is not None:
        square = square.lower()
        moves = [m for m in moves if m[:2] == square]
    return {"game_id": game_id, "square": square, "legal_moves": moves}


@mcp.tool()
def reset_game(game_id: str) -> dict:
    """Reset a game to the starting position and clear its move log.

    Args:
        game_id: UUID of the game.

    Returns:
        Game state dict after the reset.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    session: GameSession = game["session"]
    session.reset()
    return _state(game_id, session)


@mcp.tool()
def evaluate_fen(fen: str) -> dict:
    """Statically evaluate any position (material + mobility).

    Args:
        fen: FEN string of the position.

    Returns:
        Dict with score in centipawns, display string and material.
    """
    try:
        position = decode(fen)
        value = score(position, _rules)
        legal_moves = [m.uci for m in _rules.legal_moves(position)]
    except MalformedPosition as exc:
        return {"error": f"Invalid FEN: {exc}"}

    return minify_evaluation({
        "fen": fen,
        "side_to_move": position.side_to_move.value,
        "score_cp": value,
        "display": format_score(value),
        "material": material(position.board),
        "legal_moves": legal_moves,
    })


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    mcp.run()
