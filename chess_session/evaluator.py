"""Static position evaluation: material balance plus mobility.

Scores are integer centipawns from white's point of view. There is no
search; a checkmated side to move scores the mate extreme.
"""

from __future__ import annotations

from chess_session.models import Board, PieceKind, Position, Side
from chess_session.rules import RulesEngine

MATE_SCORE = 99999

# Mobility weight per legal move of difference
_MOBILITY_WEIGHT = 2

PIECE_VALUES = {
    PieceKind.PAWN: 100,
    PieceKind.KNIGHT: 320,
    PieceKind.BISHOP: 330,
    PieceKind.ROOK: 500,
    PieceKind.QUEEN: 900,
    PieceKind.KING: 0,
}


def material(board: Board) -> int:
    """Sum piece values, white positive and black negative."""
    total = 0
    for row in board:
        for piece in row:
            if piece is None:
                continue
            value = PIECE_VALUES[piece.kind]
            total += value if piece.side is Side.WHITE else -value
    return total


def mobility(position: Position, rules: RulesEngine) -> int:
    """Weighted difference of white and black legal-move counts.

    Each count forces that side to move in the same position, whoever is
    really on move, so the term stays symmetric.
    """
    white_moves = len(rules.legal_moves(position.with_side(Side.WHITE)))
    black_moves = len(rules.legal_moves(position.with_side(Side.BLACK)))
    return (white_moves - black_moves) * _MOBILITY_WEIGHT


def score(position: Position, rules: RulesEngine) -> int:
    """Evaluate a position in centipawns (white positive).

    Args:
        position: Position to score.
        rules: Rules engine used for terminal checks and move counts.

    Returns:
        -MATE_SCORE if white to move is mated, +MATE_SCORE if black to
        move is mated, 0 for stalemate or draw, otherwise material plus
        mobility.
    """
    if rules.is_checkmate(position):
        return -MATE_SCORE if position.side_to_move is Side.WHITE else MATE_SCORE
    if rules.is_stalemate(position) or rules.is_draw(position):
        return 0
    return material(position.board) + mobility(position, rules)


def format_score(value: int) -> str:
    """Render a score for display: '+M'/'-M' for mates, else pawns."""
    if abs(value) >= MATE_SCORE:
        return "+M" if value > 0 else "-M"
    return f"{value / 100:.2f}"


class Evaluator:
    """Binds a rules engine to the scoring functions."""

    def __init__(self, rules: RulesEngine) -> None:
        self._rules = rules

    def score(self, position: Position) -> int:
        return score(position, self._rules)

    def material(self, position: Position) -> int:
        return material(position.board)

    @staticmethod
    def format(value: int) -> str:
        return format_score(value)
