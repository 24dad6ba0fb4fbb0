"""Rules engine capability and its python-chess adapter.

The session never reasons about chess legality itself. It talks to a
``RulesEngine``; ``PythonChessRules`` is the concrete adapter, building a
``chess.Board`` from the position's FEN for each query.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Protocol

import chess

from chess_session.codec import decode, encode_position
from chess_session.errors import IllegalMove, MalformedPosition
from chess_session.models import Move, Piece, PieceKind, Position, square_coords

_KIND_TO_CHESS = {
    PieceKind.PAWN: chess.PAWN,
    PieceKind.KNIGHT: chess.KNIGHT,
    PieceKind.BISHOP: chess.BISHOP,
    PieceKind.ROOK: chess.ROOK,
    PieceKind.QUEEN: chess.QUEEN,
    PieceKind.KING: chess.KING,
}
_CHESS_TO_KIND = {v: k for k, v in _KIND_TO_CHESS.items()}


class RulesEngine(Protocol):
    """What the session core needs from a chess rules implementation."""

    def legal_moves(self, position: Position) -> list[Move]:
        ...

    def apply(
        self, position: Position, move: Move,
    ) -> tuple[Position, str, Piece | None]:
        """Apply a move, returning (new position, SAN, captured piece).

        Raises:
            IllegalMove: If the move is not legal in the position.
        """
        ...

    def is_check(self, position: Position) -> bool:
        ...

    def is_checkmate(self, position: Position) -> bool:
        ...

    def is_stalemate(self, position: Position) -> bool:
        ...

    def is_draw(self, position: Position) -> bool:
        ...


@lru_cache(maxsize=256)
def _board_from_fen(fen: str) -> chess.Board:
    try:
        return chess.Board(fen)
    except ValueError as exc:
        raise MalformedPosition(f"Rules engine rejected position {fen!r}: {exc}") from exc


def _to_board(position: Position) -> chess.Board:
    """python-chess board for a position. Callers must not mutate it."""
    return _board_from_fen(encode_position(position))


def _from_chess_move(move: chess.Move, position: Position) -> Move:
    promotion = _CHESS_TO_KIND[move.promotion] if move.promotion else None
    return Move(
        from_square=chess.square_name(move.from_square),
        to_square=chess.square_name(move.to_square),
        side=position.side_to_move,
        promotion=promotion,
    )


def _check_request(position: Position, move: Move) -> None:
    """Reject requests that fail before any chess rule is consulted."""
    try:
        row, col = square_coords(move.from_square)
        square_coords(move.to_square)
    except ValueError as exc:
        raise IllegalMove(move.uci, str(exc)) from exc

    piece = position.board[row][col]
    if piece is None:
        raise IllegalMove(move.uci, f"no piece on {move.from_square}")
    if piece.side is not position.side_to_move:
        raise IllegalMove(
            move.uci,
            f"{piece.side.value} piece on {position.side_to_move.value}'s turn",
        )
    if move.side is not position.side_to_move:
        raise IllegalMove(move.uci, f"not {move.side.value}'s turn")


class PythonChessRules:
    """RulesEngine backed by python-chess."""

    def legal_moves(self, position: Position) -> list[Move]:
        board = _to_board(position)
        return [_from_chess_move(m, position) for m in board.legal_moves]

    def apply(
        self, position: Position, move: Move,
    ) -> tuple[Position, str, Piece | None]:
        _check_request(position, move)

        board = _to_board(position).copy(stack=False)
        try:
            chess_move = chess.Move.from_uci(move.uci)
        except chess.InvalidMoveError as exc:
            raise IllegalMove(move.uci, "unparseable move") from exc

        if chess_move not in board.legal_moves:
            raise IllegalMove(move.uci)

        san = board.san(chess_move)
        captured = None
        if board.is_en_passant(chess_move):
            captured = Piece(PieceKind.PAWN, position.side_to_move.opponent)
        else:
            target = board.piece_at(chess_move.to_square)
            if target is not None:
                captured = Piece.from_symbol(target.symbol())

        board.push(chess_move)
        return decode(board.fen()), san, captured

    def is_check(self, position: Position) -> bool:
        return _to_board(position).is_check()

    def is_checkmate(self, position: Position) -> bool:
        return _to_board(position).is_checkmate()

    def is_stalemate(self, position: Position) -> bool:
        return _to_board(position).is_stalemate()

    def is_draw(self, position: Position) -> bool:
        board = _to_board(position)
        return board.is_insufficient_material() or board.is_fifty_moves()
