"""Local move oracle backed by Stockfish.

Wraps Stockfish via the python-chess UCI interface and answers oracle
requests with a uci move, so a session can be played offline. Strength
is adjustable:
- sub-1320 Elo blends depth-limited search with random legal moves
- 1320+ Elo uses Stockfish's UCI_Elo limiter
"""

from __future__ import annotations

import logging
import random
import shutil
from pathlib import Path

import chess
import chess.engine

from chess_session.errors import TransportFailure
from chess_session.models import OracleRequest

_LOGGER = logging.getLogger(__name__)

# Stockfish search paths in priority order
_STOCKFISH_PATHS = [
    "/opt/homebrew/bin/stockfish",
    "/usr/local/bin/stockfish",
    "/usr/bin/stockfish",
]

_UCI_ELO_FLOOR = 1320


def _find_stockfish() -> str:
    """Auto-detect the Stockfish binary.

    Checks known install paths, then falls back to PATH lookup.

    Raises:
        FileNotFoundError: If Stockfish is not found anywhere.
    """
    for path_str in _STOCKFISH_PATHS:
        if Path(path_str).is_file():
            return path_str

    which_result = shutil.which("stockfish")
    if which_result is not None:
        return which_result

    raise FileNotFoundError("Stockfish not found. Install it or pass --stockfish.")


class StockfishOracle:
    """Move oracle answering from a local Stockfish process."""

    def __init__(
        self,
        stockfish_path: str | None = None,
        target_elo: int = 800,
        think_time: float = 1.0,
    ) -> None:
        """Start Stockfish.

        Args:
            stockfish_path: Explicit binary path; auto-detected if None.
            target_elo: Playing strength.
            think_time: Seconds per move when UCI_Elo limiting is active.

        Raises:
            FileNotFoundError: If Stockfish is not found.
        """
        self._stockfish_path = stockfish_path or _find_stockfish()
        self._engine = chess.engine.SimpleEngine.popen_uci(self._stockfish_path)
        self._think_time = think_time
        self._target_elo = target_elo
        self._random_pct = 0.0
        self._depth = 1
        self._use_uci_elo = False
        self.set_difficulty(target_elo)

    def __enter__(self) -> StockfishOracle:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def target_elo(self) -> int:
        return self._target_elo

    def _ensure_engine(self) -> None:
        """Ensure the engine process is alive, restart once if terminated."""
        try:
            self._engine.ping()
        except chess.engine.EngineTerminatedError:
            _LOGGER.warning("Stockfish terminated, restarting")
            self._engine = chess.engine.SimpleEngine.popen_uci(self._stockfish_path)
            self._configure()

    def _configure(self) -> None:
        if self._use_uci_elo:
            self._engine.configure({"UCI_LimitStrength": True, "UCI_Elo": self._target_elo})
        else:
            self._engine.configure({"UCI_LimitStrength": False})

    def set_difficulty(self, target_elo: int) -> None:
        """Configure engine strength.

        Args:
            target_elo: Desired engine Elo rating.
        """
        self._target_elo = target_elo
        if target_elo >= _UCI_ELO_FLOOR:
            self._use_uci_elo = True
            self._random_pct = 0.0
            self._depth = 20
        else:
            self._use_uci_elo = False
            self._random_pct = max(0.0, 0.85 - (target_elo / _UCI_ELO_FLOOR) * 0.85)
            self._depth = max(1, min(5, target_elo // 250))
        self._ensure_engine()
        self._configure()

    def propose(self, request: OracleRequest) -> str:
        """Pick a move for the requested position.

        Raises:
            TransportFailure: If the position has no legal moves or the
                engine dies twice in a row.
        """
        try:
            board = chess.Board(request.position)
        except ValueError as exc:
            raise TransportFailure(f"Engine cannot load position: {exc}") from exc
        if board.is_game_over():
            raise TransportFailure("No move available: game is over")

        if not self._use_uci_elo and request.valid_moves and random.random() < self._random_pct:
            return random.choice(request.valid_moves)

        self._ensure_engine()
        try:
            return self._play(board)
        except chess.engine.EngineTerminatedError:
            _LOGGER.warning("Stockfish died mid-search, retrying once")
            self._engine = chess.engine.SimpleEngine.popen_uci(self._stockfish_path)
            self._configure()
            try:
                return self._play(board)
            except chess.engine.EngineTerminatedError as exc:
                raise TransportFailure("Stockfish terminated") from exc

    def _play(self, board: chess.Board) -> str:
        if self._use_uci_elo:
            limit = chess.engine.Limit(time=self._think_time)
        else:
            limit = chess.engine.Limit(depth=self._depth)
        result = self._engine.play(board, limit)
        if result.move is None:
            raise TransportFailure("Stockfish returned no move")
        return result.move.uci()

    def close(self) -> None:
        """Shut down the Stockfish process."""
        try:
            self._engine.quit()
        except chess.engine.EngineTerminatedError:
            pass
