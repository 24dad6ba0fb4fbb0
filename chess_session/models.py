"""Shared data models for the chess session core.

Pieces, squares, positions, moves and the session snapshot are the
shared contract between the session, the rules adapter, the oracle
clients and the MCP server.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

FILES = "abcdefgh"


class Side(str, Enum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> Side:
        return Side.BLACK if self is Side.WHITE else Side.WHITE

    @property
    def letter(self) -> str:
        """FEN side-to-move letter ('w' or 'b')."""
        return "w" if self is Side.WHITE else "b"

    @property
    def display(self) -> str:
        return self.value.capitalize()


class PieceKind(str, Enum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"

    @property
    def letter(self) -> str:
        """Lowercase FEN/uci letter for this kind."""
        return _KIND_LETTERS[self]

    @classmethod
    def from_letter(cls, letter: str) -> PieceKind:
        """Look up a kind by its letter (case-insensitive).

        Raises:
            ValueError: If the letter names no piece kind.
        """
        try:
            return _LETTER_KINDS[letter.lower()]
        except KeyError:
            raise ValueError(f"Unknown piece letter: {letter!r}") from None


_KIND_LETTERS = {
    PieceKind.PAWN: "p",
    PieceKind.KNIGHT: "n",
    PieceKind.BISHOP: "b",
    PieceKind.ROOK: "r",
    PieceKind.QUEEN: "q",
    PieceKind.KING: "k",
}
_LETTER_KINDS = {v: k for k, v in _KIND_LETTERS.items()}


@dataclass(frozen=True)
class Piece:
    """A chess piece. Immutable value."""

    kind: PieceKind
    side: Side

    @property
    def symbol(self) -> str:
        """FEN letter: uppercase for white, lowercase for black."""
        letter = self.kind.letter
        return letter.upper() if self.side is Side.WHITE else letter

    @classmethod
    def from_symbol(cls, symbol: str) -> Piece:
        side = Side.WHITE if symbol.isupper() else Side.BLACK
        return cls(PieceKind.from_letter(symbol), side)

    def to_dict(self) -> dict:
        return {"type": self.kind.value, "color": self.side.value}


# 8x8 grid indexed [row][col], row 0 = rank 8, col 0 = file a.
Board = tuple[tuple[Piece | None, ...], ...]


def square_name(row: int, col: int) -> str:
    """Convert grid coordinates to an algebraic square name.

    Args:
        row: 0-7, top to bottom (rank 8 to rank 1).
        col: 0-7, left to right (file a to file h).

    Returns:
        Algebraic name such as 'e4'.

    Raises:
        ValueError: If either coordinate is off the board.
    """
    if not (0 <= row < 8 and 0 <= col < 8):
        raise ValueError(f"Coordinates off the board: ({row}, {col})")
    return f"{FILES[col]}{8 - row}"


def square_coords(name: str) -> tuple[int, int]:
    """Convert an algebraic square name to (row, col).

    Raises:
        ValueError: If the name is not a square on the board.
    """
    if (
        len(name) != 2
        or name[0] not in FILES
        or name[1] not in "12345678"
    ):
        raise ValueError(f"Invalid square: {name!r}")
    return 8 - int(name[1]), FILES.index(name[0])


@dataclass(frozen=True)
class Position:
    """Board plus side to move and the opaque FEN passthrough fields."""

    board: Board
    side_to_move: Side = Side.WHITE
    castling: str = "-"
    en_passant: str = "-"
    halfmove: int = 0
    fullmove: int = 1

    def piece_at(self, square: str) -> Piece | None:
        row, col = square_coords(square)
        return self.board[row][col]

    def with_side(self, side: Side) -> Position:
        """Copy of this position with a different side to move."""
        return replace(self, side_to_move=side)

    @property
    def repetition_key(self) -> tuple:
        """Identity used for threefold-repetition counting."""
        return (self.board, self.side_to_move, self.castling, self.en_passant)


@dataclass(frozen=True)
class Move:
    """A move request. Becomes a LoggedMove once the rules accept it."""

    from_square: str
    to_square: str
    side: Side
    promotion: PieceKind | None = None

    @property
    def uci(self) -> str:
        promo = self.promotion.letter if self.promotion is not None else ""
        return f"{self.from_square}{self.to_square}{promo}"


@dataclass(frozen=True)
class LoggedMove:
    """A move accepted by the rules engine and recorded in the log."""

    ply: int
    side: Side
    san: str
    uci: str
    eval_after: int

    def to_dict(self) -> dict:
        return {
            "ply": self.ply,
            "side": self.side.value,
            "san": self.san,
            "uci": self.uci,
            "eval_after": self.eval_after,
        }


class StatusKind(str, Enum):
    ONGOING = "ongoing"
    CHECK = "check"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    DRAW = "draw"


@dataclass(frozen=True)
class GameStatus:
    """Derived game status.

    ``side`` is the side in check for CHECK and the winner for CHECKMATE;
    it is None otherwise.
    """

    kind: StatusKind = StatusKind.ONGOING
    side: Side | None = None

    @property
    def is_terminal(self) -> bool:
        return self.kind in (
            StatusKind.CHECKMATE, StatusKind.STALEMATE, StatusKind.DRAW,
        )

    @property
    def message(self) -> str | None:
        """Human-readable status line, None while the game is ongoing."""
        if self.kind is StatusKind.CHECKMATE:
            return f"Checkmate. {self.side.display} wins."
        if self.kind is StatusKind.STALEMATE:
            return "Stalemate. Draw."
        if self.kind is StatusKind.DRAW:
            return "Draw."
        if self.kind is StatusKind.CHECK:
            return f"Check on {self.side.display}."
        return None


ONGOING = GameStatus()


class Phase(str, Enum):
    AWAITING_HUMAN = "awaiting_human"
    AWAITING_ORACLE = "awaiting_oracle"
    TERMINAL = "terminal"


class MoveOutcome(str, Enum):
    APPLIED = "applied"
    REJECTED = "rejected"
    ILLEGAL = "illegal"
    GAME_OVER = "game_over"
    MALFORMED_REPLY = "malformed_reply"
    TRANSPORT_FAILURE = "transport_failure"


@dataclass(frozen=True)
class MoveResult:
    """Typed outcome of a move attempt."""

    outcome: MoveOutcome
    logged: LoggedMove | None = None
    reason: str = ""

    @property
    def applied(self) -> bool:
        return self.outcome is MoveOutcome.APPLIED


@dataclass(frozen=True)
class OracleRequest:
    """Payload handed to a move oracle for one exchange."""

    position: str
    valid_moves: list[str] = field(default_factory=list)
    last_move: dict | None = None

    def to_payload(self) -> dict:
        return {
            "validMoves": list(self.valid_moves),
            "position": self.position,
            "lastMove": self.last_move,
        }


@dataclass
class SessionSnapshot:
    """Everything the UI needs after a state change."""

    fen: str
    board: list[list[dict | None]]
    side_to_move: str
    phase: str
    status: str | None
    move_log: list[dict] = field(default_factory=list)
    last_move: dict | None = None
    eval_score: int = 0
    eval_display: str = "0.00"
    legal_moves: list[str] = field(default_factory=list)
    human_side: str = "white"
    is_game_over: bool = False
