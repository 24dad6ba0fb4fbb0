"""Position codec: 8x8 board grid <-> canonical FEN string.

The board field walks ranks 8 down to 1 and files a to h, run-length
encoding empty squares. The full string always carries six fields:
board, side to move, castling, en-passant target, halfmove clock and
fullmove number.
"""

from __future__ import annotations

from chess_session.errors import MalformedPosition
from chess_session.models import Board, Piece, PieceKind, Position, Side

DEFAULT_CASTLING = "-"
DEFAULT_EN_PASSANT = "-"
DEFAULT_HALFMOVE = 0
DEFAULT_FULLMOVE = 1

_BACK_RANK = (
    PieceKind.ROOK, PieceKind.KNIGHT, PieceKind.BISHOP, PieceKind.QUEEN,
    PieceKind.KING, PieceKind.BISHOP, PieceKind.KNIGHT, PieceKind.ROOK,
)

_SIDE_LETTERS = {"w": Side.WHITE, "b": Side.BLACK}


def initial_board() -> Board:
    """Return the standard starting grid (black on rows 0-1)."""
    empty: tuple[Piece | None, ...] = (None,) * 8
    return (
        tuple(Piece(kind, Side.BLACK) for kind in _BACK_RANK),
        (Piece(PieceKind.PAWN, Side.BLACK),) * 8,
        empty,
        empty,
        empty,
        empty,
        (Piece(PieceKind.PAWN, Side.WHITE),) * 8,
        tuple(Piece(kind, Side.WHITE) for kind in _BACK_RANK),
    )


def initial_position() -> Position:
    return Position(board=initial_board(), side_to_move=Side.WHITE, castling="KQkq")


def _encode_board(board: Board) -> str:
    ranks: list[str] = []
    for row in board:
        rank = ""
        empty = 0
        for piece in row:
            if piece is None:
                empty += 1
                continue
            if empty:
                rank += str(empty)
                empty = 0
            rank += piece.symbol
        if empty:
            rank += str(empty)
        ranks.append(rank)
    return "/".join(ranks)


def encode(board: Board, side: Side) -> str:
    """Encode a grid and side to move with default passthrough fields.

    Args:
        board: 8x8 grid of Piece or None.
        side: Side to move.

    Returns:
        Six-field FEN string.
    """
    return (
        f"{_encode_board(board)} {side.letter} {DEFAULT_CASTLING} "
        f"{DEFAULT_EN_PASSANT} {DEFAULT_HALFMOVE} {DEFAULT_FULLMOVE}"
    )


def encode_position(position: Position) -> str:
    """Encode a full Position, carrying its castling/en-passant/clocks."""
    return (
        f"{_encode_board(position.board)} {position.side_to_move.letter} "
        f"{position.castling} {position.en_passant} "
        f"{position.halfmove} {position.fullmove}"
    )


def _decode_rank(text: str, rank_index: int) -> tuple[Piece | None, ...]:
    squares: list[Piece | None] = []
    for char in text:
        if char.isdigit():
            count = int(char)
            if count == 0:
                raise MalformedPosition(f"Zero run length in rank {8 - rank_index}")
            squares.extend([None] * count)
        else:
            try:
                squares.append(Piece.from_symbol(char))
            except ValueError as exc:
                raise MalformedPosition(str(exc)) from exc
        if len(squares) > 8:
            break
    if len(squares) != 8:
        raise MalformedPosition(
            f"Rank {8 - rank_index} has {len(squares)} files, expected 8: {text!r}"
        )
    return tuple(squares)


def _parse_clock(text: str, name: str) -> int:
    if not text.isdigit():
        raise MalformedPosition(f"Invalid {name}: {text!r}")
    return int(text)


def decode(fen: str) -> Position:
    """Decode a FEN string into a Position.

    Missing trailing fields take the defaults (castling '-', en-passant
    '-', halfmove 0, fullmove 1).

    Args:
        fen: Position string, at least the board field.

    Returns:
        Decoded Position.

    Raises:
        MalformedPosition: If the board does not expand to 8 ranks of 8
            files, a piece letter is unknown, the side is not 'w'/'b',
            a clock is not a non-negative integer, or there are more
            than six fields.
    """
    if not isinstance(fen, str):
        raise MalformedPosition(f"Position must be a string, got {type(fen).__name__}")

    fields = fen.split()
    if not fields:
        raise MalformedPosition("Empty position string")
    if len(fields) > 6:
        raise MalformedPosition(f"Expected at most 6 fields, got {len(fields)}")

    rank_texts = fields[0].split("/")
    if len(rank_texts) != 8:
        raise MalformedPosition(f"Expected 8 ranks, got {len(rank_texts)}")
    board = tuple(_decode_rank(text, i) for i, text in enumerate(rank_texts))

    side = Side.WHITE
    if len(fields) > 1:
        if fields[1] not in _SIDE_LETTERS:
            raise MalformedPosition(f"Invalid side to move: {fields[1]!r}")
        side = _SIDE_LETTERS[fields[1]]

    castling = fields[2] if len(fields) > 2 else DEFAULT_CASTLING
    en_passant = fields[3] if len(fields) > 3 else DEFAULT_EN_PASSANT
    halfmove = (
        _parse_clock(fields[4], "halfmove clock")
        if len(fields) > 4 else DEFAULT_HALFMOVE
    )
    fullmove = (
        _parse_clock(fields[5], "fullmove number")
        if len(fields) > 5 else DEFAULT_FULLMOVE
    )

    return Position(
        board=board,
        side_to_move=side,
        castling=castling,
        en_passant=en_passant,
        halfmove=halfmove,
        fullmove=fullmove,
    )


def validate_board(board: Board) -> None:
    """Check a grid is a playable board: 8x8 with one king per side.

    Raises:
        MalformedPosition: If the grid shape is wrong or either side
            does not have exactly one king.
    """
    if len(board) != 8 or any(len(row) != 8 for row in board):
        raise MalformedPosition("Board must be 8x8")

    kings = {Side.WHITE: 0, Side.BLACK: 0}
    for row in board:
        for piece in row:
            if piece is not None and piece.kind is PieceKind.KING:
                kings[piece.side] += 1

    if kings[Side.WHITE] != 1 or kings[Side.BLACK] != 1:
        raise MalformedPosition(
            "Board must have exactly 1 white king and 1 black king "
            f"(found {kings[Side.WHITE]} white, {kings[Side.BLACK]} black)"
        )


def board_to_grid(board: Board) -> list[list[dict | None]]:
    """Render a board as rows of {type, color} dicts for JSON consumers."""
    return [
        [piece.to_dict() if piece is not None else None for piece in row]
        for row in board
    ]


def board_to_pieces(board: Board) -> list[dict]:
    """List occupied squares as {piece, row, col} records."""
    pieces = []
    for row_index, row in enumerate(board):
        for col_index, piece in enumerate(row):
            if piece is not None:
                pieces.append({
                    "piece": piece.to_dict(),
                    "row": row_index,
                    "col": col_index,
                })
    return pieces
