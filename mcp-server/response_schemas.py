"""Response schemas and minification for MCP tool responses.

Minifies session snapshots before they are returned to the MCP client:
the board grid and legal-move list are dropped (the FEN carries the
position) and the move log becomes a PGN-style SAN string
(1.e4 e5 2.Nf3 ...), which is natural for an LLM agent to read.
"""

from __future__ import annotations

import os


# ---------------------------------------------------------------------------
# Minification functions
# ---------------------------------------------------------------------------


def minify_game_state(state: dict) -> dict:
    """Minify a session snapshot dict for MCP response.

    Keeps the core fields, compacts move_log to a PGN string, replaces
    legal_moves with a count and drops the board grid.

    Args:
        state: Snapshot dict (dataclasses.asdict of SessionSnapshot) with
            a game_id key added.

    Returns:
        Minified dict with reduced token footprint.
    """
    result = {}

    for key in (
        "game_id", "fen", "side_to_move", "human_side", "phase", "status",
        "last_move", "eval_score", "eval_display", "is_game_over",
    ):
        if key in state:
            result[key] = state[key]

    # Compact move_log: list of dicts -> PGN string
    move_log = state.get("move_log", [])
    if isinstance(move_log, list):
        sans = [entry.get("san", "") for entry in move_log]
        black_first = bool(move_log) and move_log[0].get("side") == "black"
        result["move_list"] = _moves_to_pgn_string(sans, black_first=black_first)
        result["ply"] = len(move_log)
    else:
        result["move_list"] = move_log
        result["ply"] = 0

    legal_moves = state.get("legal_moves", [])
    if isinstance(legal_moves, list):
        result["legal_moves_count"] = len(legal_moves)
    else:
        result["legal_moves_count"] = 0

    # Removed fields: board, legal_moves

    return result


def minify_evaluation(evaluation: dict) -> dict:
    """Minify an evaluate_fen response dict.

    Replaces the legal move list with its count.

    Args:
        evaluation: Full evaluation dict.

    Returns:
        Minified dict.
    """
    result = {}
    for key in ("fen", "side_to_move", "score_cp", "display", "material"):
        if key in evaluation:
            result[key] = evaluation[key]

    legal_moves = evaluation.get("legal_moves", [])
    result["legal_moves_count"] = len(legal_moves) if isinstance(legal_moves, list) else 0
    return result


# ---------------------------------------------------------------------------
# Helper: move list to PGN string
# ---------------------------------------------------------------------------


def _moves_to_pgn_string(moves: list[str], black_first: bool = False) -> str:
    """Convert a list of SAN moves to a PGN move string.

    E.g., ['e4', 'e5', 'Nf3', 'Nc6'] -> '1.e4 e5 2.Nf3 Nc6'
    With black_first: ['e5', 'Nf3'] -> '1...e5 2.Nf3'

    Args:
        moves: List of SAN move strings.
        black_first: True when the first move was played by black.

    Returns:
        PGN-formatted move string.
    """
    if not moves:
        return ""

    parts = []
    offset = 1 if black_first else 0
    for i, move in enumerate(moves):
        index = i + offset
        move_num = index // 2 + 1
        if index % 2 == 0:
            # White to move: prepend the move number
            parts.append(f"{move_num}.{move}")
        elif i == 0:
            parts.append(f"{move_num}...{move}")
        else:
            parts.append(move)

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Validation schemas (dict-based)
# ---------------------------------------------------------------------------

GAME_STATE_SCHEMA = {
    "game_id": str,
    "fen": str,
    "side_to_move": str,
    "human_side": str,
    "phase": str,
    "status": (str, type(None)),
    "last_move": (dict, type(None)),
    "eval_score": int,
    "eval_display": str,
    "is_game_over": bool,
    "move_list": str,
    "ply": int,
    "legal_moves_count": int,
}

EVALUATION_SCHEMA = {
    "fen": str,
    "side_to_move": str,
    "score_cp": int,
    "display": str,
    "material": int,
    "legal_moves_count": int,
}

ERROR_SCHEMA = {
    "error": str,
}


def validate_response(response: dict, schema: dict) -> list[str]:
    """Validate a response dict against a schema.

    Only runs when CHESS_SESSION_VALIDATE=1 env var is set.

    Args:
        response: Response dict to validate.
        schema: Dict mapping key names to expected types (or tuple of types).

    Returns:
        List of validation error strings (empty = valid).
    """
    if os.environ.get("CHESS_SESSION_VALIDATE") != "1":
        return []

    errors = []

    if not isinstance(response, dict):
        errors.append(f"Response is not a dict: {type(response).__name__}")
        return errors

    for key, expected_types in schema.items():
        if key not in response:
            errors.append(f"Missing key: {key}")
            continue

        value = response[key]
        if isinstance(expected_types, tuple):
            if not isinstance(value, expected_types):
                type_names = ", ".join(t.__name__ for t in expected_types)
                errors.append(
                    f"Key '{key}': expected ({type_names}), "
                    f"got {type(value).__name__}"
                )
        else:
            if not isinstance(value, expected_types):
                errors.append(
                    f"Key '{key}': expected {expected_types.__name__}, "
                    f"got {type(value).__name__}"
                )

    return errors
