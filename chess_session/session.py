"""Game session state machine for human-vs-oracle play.

The session owns the authoritative position, the move log and the game
status, and alternates between waiting for the human and waiting for the
move oracle:

    awaiting_human -> awaiting_oracle -> awaiting_human -> ... -> terminal

Every transition goes through one apply pipeline (validate, apply, log,
evaluate, derive status, hand off) and either commits the whole
(position, log, status, phase) tuple or leaves everything untouched.
Listeners are notified once per completed transition and never for a
rejected attempt.
"""

from __future__ import annotations

import logging
import re
import time
from collections import Counter
from collections.abc import Callable

from chess_session.codec import (
    board_to_grid,
    decode,
    encode_position,
    initial_position,
    validate_board,
)
from chess_session.errors import IllegalMove, MalformedOracleReply
from chess_session.evaluator import Evaluator
from chess_session.models import (
    ONGOING,
    GameStatus,
    LoggedMove,
    Move,
    MoveOutcome,
    MoveResult,
    OracleRequest,
    Phase,
    PieceKind,
    Position,
    SessionSnapshot,
    Side,
    StatusKind,
)
from chess_session.rules import PythonChessRules, RulesEngine

_LOGGER = logging.getLogger(__name__)

UCI_MOVE_RE = re.compile(r"^([a-h][1-8])([a-h][1-8])([qrbn])?$")

_REPETITION_LIMIT = 3

Listener = Callable[["GameSession"], None]
OracleHook = Callable[[OracleRequest], None]


def parse_oracle_move(text: object) -> tuple[str, str, PieceKind | None]:
    """Parse an oracle reply such as 'e2e4' or 'E7E8Q'.

    Args:
        text: Raw reply. Normalised to lowercase before matching.

    Returns:
        (from_square, to_square, promotion or None when omitted).

    Raises:
        MalformedOracleReply: If the reply is not two squares plus an
            optional q/r/b/n promotion letter.
    """
    if not isinstance(text, str):
        raise MalformedOracleReply(text)
    match = UCI_MOVE_RE.match(text.strip().lower())
    if match is None:
        raise MalformedOracleReply(text)
    from_square, to_square, promo = match.groups()
    return from_square, to_square, PieceKind.from_letter(promo) if promo else None


def _promotion_kind(text: str) -> PieceKind:
    """Accept 'queen' or 'q' style promotion names."""
    text = text.lower()
    if len(text) == 1:
        kind = PieceKind.from_letter(text)
    else:
        kind = PieceKind(text)
    if kind in (PieceKind.PAWN, PieceKind.KING):
        raise ValueError(f"Cannot promote to {kind.value}")
    return kind


def resolve_promotion(
    position: Position,
    from_square: str,
    to_square: str,
    requested: PieceKind | None,
    strict: bool = False,
) -> PieceKind | None:
    """Shared promotion policy for human and oracle moves.

    An explicit promotion is always passed through as requested. When none
    is given and a pawn lands on the far rank, the move promotes to a
    queen, unless ``strict`` is set, in which case the move is refused.

    Raises:
        IllegalMove: In strict mode, for a promoting move without an
            explicit piece.
    """
    if requested is not None:
        return requested
    try:
        piece = position.piece_at(from_square)
    except ValueError:
        return None
    if piece is None or piece.kind is not PieceKind.PAWN:
        return None
    if to_square[1:] not in ("1", "8"):
        return None
    if strict:
        raise IllegalMove(f"{from_square}{to_square}", "promotion piece required")
    return PieceKind.QUEEN


class GameSession:
    """Authoritative state for one human-vs-oracle game.

    Args:
        rules: Rules engine. Defaults to the python-chess adapter.
        human_side: Side the human plays; the oracle plays the other.
        fen: Optional starting position. Defaults to the standard setup.
        oracle_hook: Called with an OracleRequest whenever the session
            enters awaiting_oracle through a transition, reset or load.
        strict_promotion: Refuse promoting moves that name no piece
            instead of defaulting to a queen.
        clock: Monotonic time source used for ``waiting_seconds``.
    """

    def __init__(
        self,
        rules: RulesEngine | None = None,
        human_side: Side = Side.WHITE,
        fen: str | None = None,
        oracle_hook: OracleHook | None = None,
        strict_promotion: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._rules: RulesEngine = rules or PythonChessRules()
        self._evaluator = Evaluator(self._rules)
        self._human_side = Side(human_side)
        self._oracle_hook = oracle_hook
        self._strict_promotion = strict_promotion
        self._clock = clock
        self._listeners: list[Listener] = []
        self._version = 0
        self._setup(self._starting_position(fen))

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def position(self) -> Position:
        return self._position

    @property
    def board(self):
        return self._position.board

    @property
    def side_to_move(self) -> Side:
        return self._position.side_to_move

    @property
    def human_side(self) -> Side:
        return self._human_side

    @property
    def oracle_side(self) -> Side:
        return self._human_side.opponent

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def status(self) -> GameStatus:
        return self._status

    @property
    def move_log(self) -> tuple[LoggedMove, ...]:
        return self._log

    @property
    def last_move(self) -> dict | None:
        return self._last_move

    @property
    def eval_score(self) -> int:
        return self._eval_score

    @property
    def eval_display(self) -> str:
        return self._evaluator.format(self._eval_score)

    @property
    def version(self) -> int:
        """Incremented on every committed change (moves, reset, load)."""
        return self._version

    @property
    def waiting_seconds(self) -> float:
        """Time spent in the current awaiting_oracle episode, else 0."""
        if self._phase is not Phase.AWAITING_ORACLE or self._waiting_since is None:
            return 0.0
        return max(0.0, self._clock() - self._waiting_since)

    @property
    def fen(self) -> str:
        return encode_position(self._position)

    def legal_moves_uci(self) -> list[str]:
        if self._phase is Phase.TERMINAL:
            return []
        return [move.uci for move in self._rules.legal_moves(self._position)]

    def oracle_request(self) -> OracleRequest:
        """Payload for the move oracle: position, legal moves, last move."""
        return OracleRequest(
            position=self.fen,
            valid_moves=self.legal_moves_uci(),
            last_move=dict(self._last_move) if self._last_move else None,
        )

    def snapshot(self) -> SessionSnapshot:
        """UI-boundary view of the current state."""
        return SessionSnapshot(
            fen=self.fen,
            board=board_to_grid(self._position.board),
            side_to_move=self.side_to_move.value,
            phase=self._phase.value,
            status=self._status.message,
            move_log=[entry.to_dict() for entry in self._log],
            last_move=dict(self._last_move) if self._last_move else None,
            eval_score=self._eval_score,
            eval_display=self.eval_display,
            legal_moves=self.legal_moves_uci(),
            human_side=self._human_side.value,
            is_game_over=self._phase is Phase.TERMINAL,
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state-change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
        if self._phase is Phase.AWAITING_ORACLE and self._oracle_hook is not None:
            self._oracle_hook(self.oracle_request())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _starting_position(self, fen: str | None) -> Position:
        if fen is None:
            return initial_position()
        position = decode(fen)
        validate_board(position.board)
        return position

    def _setup(self, position: Position) -> None:
        repetitions = Counter({position.repetition_key: 1})
        status = self._derive_status(position, repetitions)
        eval_score = self._score(position, status)
        phase = self._phase_for(position, status)

        # Commit
        self._position = position
        self._log: tuple[LoggedMove, ...] = ()
        self._last_move: dict | None = None
        self._repetitions: Counter = repetitions
        self._status = status
        self._eval_score = eval_score
        self._phase = phase
        self._waiting_since = self._clock() if phase is Phase.AWAITING_ORACLE else None
        self._version += 1

    def _score(self, position: Position, status: GameStatus) -> int:
        """Evaluator score, 0 for any drawn status (repetition included)."""
        if status.kind in (StatusKind.STALEMATE, StatusKind.DRAW):
            return 0
        return self._evaluator.score(position)

    def reset(self) -> None:
        """Return to the standard starting position with an empty log."""
        self._setup(initial_position())
        _LOGGER.debug("Session reset")
        self._notify()

    def load_position(self, fen: str) -> None:
        """Replace the game with one starting from ``fen``.

        Raises:
            MalformedPosition: If the FEN does not decode or the board
                does not have exactly one king per side. State is left
                unchanged in that case.
        """
        position = self._starting_position(fen)
        self._setup(position)
        _LOGGER.debug("Session loaded position %s", fen)
        self._notify()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def _derive_status(self, position: Position, repetitions: Counter) -> GameStatus:
        rules = self._rules
        if rules.is_checkmate(position):
            return GameStatus(StatusKind.CHECKMATE, position.side_to_move.opponent)
        if rules.is_stalemate(position):
            return GameStatus(StatusKind.STALEMATE)
        if (
            rules.is_draw(position)
            or repetitions[position.repetition_key] >= _REPETITION_LIMIT
        ):
            return GameStatus(StatusKind.DRAW)
        if rules.is_check(position):
            return GameStatus(StatusKind.CHECK, position.side_to_move)
        return ONGOING

    def recompute_status(self) -> GameStatus:
        """Derive the status of the current position from scratch."""
        return self._derive_status(self._position, self._repetitions)

    def _phase_for(self, position: Position, status: GameStatus) -> Phase:
        if status.is_terminal:
            return Phase.TERMINAL
        if position.side_to_move is self._human_side:
            return Phase.AWAITING_HUMAN
        return Phase.AWAITING_ORACLE

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------

    def submit_human_move(
        self,
        from_square: str,
        to_square: str,
        promotion: PieceKind | str | None = None,
    ) -> MoveResult:
        """Apply a move dragged by the human.

        Returns:
            MoveResult. ``rejected`` for a null move or when it is not the
            human's turn, ``game_over`` once terminal, ``illegal`` when the
            rules refuse it, ``applied`` otherwise.
        """
        if self._phase is Phase.TERMINAL:
            return MoveResult(MoveOutcome.GAME_OVER, reason="game over")
        if from_square == to_square:
            return MoveResult(MoveOutcome.REJECTED, reason="null move")
        if self._phase is not Phase.AWAITING_HUMAN:
            return MoveResult(MoveOutcome.REJECTED, reason="not the human's turn")

        if isinstance(promotion, str) and not isinstance(promotion, PieceKind):
            try:
                promotion = _promotion_kind(promotion)
            except ValueError:
                return MoveResult(MoveOutcome.ILLEGAL, reason=f"bad promotion {promotion!r}")

        return self._play(from_square, to_square, promotion, self._human_side)

    def apply_oracle_move(self, proposed_uci: object) -> MoveResult:
        """Apply the oracle's proposed move.

        A malformed reply or a move the rules refuse is dropped and the
        session stays in awaiting_oracle; there is no local fallback.
        """
        if self._phase is Phase.TERMINAL:
            return MoveResult(MoveOutcome.GAME_OVER, reason="game over")
        if self._phase is not Phase.AWAITING_ORACLE:
            return MoveResult(MoveOutcome.REJECTED, reason="not the oracle's turn")

        try:
            from_square, to_square, promotion = parse_oracle_move(proposed_uci)
        except MalformedOracleReply as exc:
            _LOGGER.warning("Ignoring oracle reply: %s", exc)
            return MoveResult(MoveOutcome.MALFORMED_REPLY, reason=str(exc))

        return self._play(from_square, to_square, promotion, self.oracle_side)

    def _play(
        self,
        from_square: str,
        to_square: str,
        promotion: PieceKind | None,
        side: Side,
    ) -> MoveResult:
        before = self._position
        try:
            promotion = resolve_promotion(
                before, from_square, to_square, promotion,
                strict=self._strict_promotion,
            )
            move = Move(from_square, to_square, side, promotion)
            after, san, captured = self._rules.apply(before, move)
        except IllegalMove as exc:
            _LOGGER.warning("Illegal %s move %s: %s", side.value, exc.uci, exc.reason)
            return MoveResult(MoveOutcome.ILLEGAL, reason=exc.reason)

        after = after.with_side(side.opponent)
        repetitions = self._repetitions.copy()
        repetitions[after.repetition_key] += 1
        status = self._derive_status(after, repetitions)
        logged = LoggedMove(
            ply=len(self._log) + 1,
            side=side,
            san=san,
            uci=move.uci,
            eval_after=self._score(after, status),
        )
        phase = self._phase_for(after, status)

        # Commit
        self._position = after
        self._repetitions = repetitions
        self._status = status
        self._log = self._log + (logged,)
        self._last_move = {"from": from_square, "to": to_square}
        self._eval_score = logged.eval_after
        self._phase = phase
        self._waiting_since = self._clock() if phase is Phase.AWAITING_ORACLE else None
        self._version += 1

        _LOGGER.debug(
            "Ply %d %s %s (%s), eval %d, phase %s",
            logged.ply, side.value, logged.uci, san, logged.eval_after, phase.value,
        )
        if captured is not None:
            _LOGGER.debug("Captured %s %s", captured.side.value, captured.kind.value)

        self._notify()
        return MoveResult(MoveOutcome.APPLIED, logged=logged)
