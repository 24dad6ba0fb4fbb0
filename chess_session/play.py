"""Command-line front end for the chess session core.

Usage:
    chess-session evaluate "<fen>"
    chess-session play [--oracle http|stockfish] [--black] [--url URL]

`play` runs a terminal game: you type moves as 'e2e4' (or 'e2 e4',
'e7e8q'), the oracle answers.
"""

from __future__ import annotations

import argparse
import logging
import sys

import chess

from chess_session.codec import decode, encode_position
from chess_session.config import OracleSettings
from chess_session.errors import MalformedPosition
from chess_session.evaluator import format_score, score
from chess_session.models import MoveOutcome, Phase, Side
from chess_session.oracle import HttpMoveOracle, MoveOracle, play_oracle_turn
from chess_session.rules import PythonChessRules
from chess_session.session import GameSession


def _print_board(session: GameSession) -> None:
    print(chess.Board(session.fen))
    print(f"Eval: {session.eval_display}")
    if session.status.message:
        print(session.status.message)
    print()


def _parse_input(text: str) -> tuple[str, str, str | None] | None:
    """Split 'e2e4', 'e2 e4' or 'e7e8q' into (from, to, promotion)."""
    compact = text.replace(" ", "").replace("-", "").lower()
    if len(compact) not in (4, 5):
        return None
    promotion = compact[4] if len(compact) == 5 else None
    return compact[:2], compact[2:4], promotion


def _cli_evaluate(fen: str) -> int:
    """Print score and status for a FEN position."""
    rules = PythonChessRules()
    try:
        position = decode(fen)
        value = score(position, rules)
        legal_count = len(rules.legal_moves(position))
    except MalformedPosition as exc:
        print(f"Invalid position: {exc}", file=sys.stderr)
        return 1

    print(f"Position: {encode_position(position)}")
    print(f"Side to move: {position.side_to_move.display}")
    print(f"Score: {value} cp ({format_score(value)})")
    print(f"Legal moves: {legal_count}")
    return 0


def _build_oracle(args: argparse.Namespace) -> MoveOracle:
    if args.oracle == "stockfish":
        from chess_session.engine import StockfishOracle

        return StockfishOracle(stockfish_path=args.stockfish, target_elo=args.elo)

    settings = OracleSettings.from_env()
    return HttpMoveOracle(
        args.url or settings.url,
        token=args.token or settings.token,
        timeout=args.timeout or settings.timeout,
    )


def _cli_play(args: argparse.Namespace) -> int:
    """Interactive game loop against the configured oracle."""
    human_side = Side.BLACK if args.black else Side.WHITE
    try:
        session = GameSession(human_side=human_side, fen=args.fen)
    except MalformedPosition as exc:
        print(f"Invalid position: {exc}", file=sys.stderr)
        return 1

    oracle = _build_oracle(args)
    print(f"New game, you play {human_side.value}")
    _print_board(session)

    try:
        while session.phase is not Phase.TERMINAL:
            if session.phase is Phase.AWAITING_ORACLE:
                result = play_oracle_turn(session, oracle)
                if not result.applied:
                    print(f"Oracle failed ({result.outcome.value}): {result.reason}")
                    print("Press Enter to retry, 'q' to quit: ", end="")
                    if input().strip().lower() == "q":
                        return 0
                    continue
                print(f"Oracle plays: {result.logged.san}")
                _print_board(session)
                continue

            print("Your move (e.g. e2e4, 'q' to quit): ", end="")
            user_input = input().strip()
            if user_input.lower() == "q":
                print("Game ended by user.")
                return 0

            parsed = _parse_input(user_input)
            if parsed is None:
                print("Invalid move format. Use e.g. e2e4 or e7e8q.")
                continue

            result = session.submit_human_move(*parsed)
            if result.outcome is MoveOutcome.ILLEGAL:
                print(f"Illegal move ({result.reason}). Try again.")
                continue
            if not result.applied:
                print(f"Move not accepted: {result.reason}")
                continue
            print(f"You played: {result.logged.san}")
            _print_board(session)
    finally:
        close = getattr(oracle, "close", None)
        if close is not None:
            close()

    print(f"Game over: {session.status.message}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Chess session core - evaluate positions or play against an oracle"
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    evaluate_parser = subparsers.add_parser("evaluate", help="Score a FEN position")
    evaluate_parser.add_argument("fen", type=str, help="FEN string to evaluate")

    play_parser = subparsers.add_parser("play", help="Play against a move oracle")
    play_parser.add_argument(
        "--oracle", choices=["http", "stockfish"], default="http",
        help="Remote HTTP oracle (default) or local Stockfish",
    )
    play_parser.add_argument("--url", help="Oracle URL (overrides CHESS_ORACLE_URL)")
    play_parser.add_argument("--token", help="Bearer token (overrides CHESS_ORACLE_TOKEN)")
    play_parser.add_argument("--timeout", type=float, help="HTTP timeout in seconds")
    play_parser.add_argument("--stockfish", help="Path to the Stockfish binary")
    play_parser.add_argument("--elo", type=int, default=800, help="Stockfish strength")
    play_parser.add_argument("--black", action="store_true", help="Play the black pieces")
    play_parser.add_argument("--fen", help="Start from this position")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "evaluate":
        return _cli_evaluate(args.fen)
    if args.command == "play":
        return _cli_play(args)
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
