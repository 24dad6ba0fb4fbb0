"""Error taxonomy for the chess session core."""

from __future__ import annotations


class ChessSessionError(Exception):
    """Base class for every error raised by the session core."""


class MalformedPosition(ChessSessionError, ValueError):
    """A position string or board failed to decode or validate."""


class IllegalMove(ChessSessionError):
    """The rules engine refused a move."""

    def __init__(self, uci: str, reason: str = "illegal move") -> None:
        super().__init__(f"{reason}: {uci}")
        self.uci = uci
        self.reason = reason


class MalformedOracleReply(ChessSessionError):
    """The oracle answered with something that is not a uci move."""

    def __init__(self, reply: object) -> None:
        super().__init__(f"Malformed oracle reply: {reply!r}")
        self.reply = reply


class TransportFailure(ChessSessionError):
    """The oracle could not be reached or gave no usable response."""
