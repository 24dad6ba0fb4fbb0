"""Move oracle clients and the single oracle exchange.

An oracle receives the current position, the legal moves in uci and the
last move, and answers with one textual move proposal. One exchange is
one request and one response; retry and timeout policy belong to the
caller.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.request
from collections.abc import Callable
from typing import Protocol

from chess_session.config import OracleSettings
from chess_session.errors import MalformedOracleReply, TransportFailure
from chess_session.models import MoveOutcome, MoveResult, OracleRequest, Phase
from chess_session.session import GameSession

_LOGGER = logging.getLogger(__name__)

TokenProvider = Callable[[], "str | None"]


class MoveOracle(Protocol):
    """Anything that can propose a move for a position."""

    def propose(self, request: OracleRequest) -> str:
        """Return a move proposal as text.

        Raises:
            TransportFailure: If no response could be obtained.
            MalformedOracleReply: If a response arrived without a move.
        """
        ...


class HttpMoveOracle:
    """Oracle reached over HTTP with a JSON POST.

    Request body: ``{"validMoves": [...], "position": fen, "lastMove":
    {"from", "to"} | null}``. Expected response: ``{"aiMove": "e7e5"}``.

    Args:
        url: Endpoint URL.
        token: Bearer credential, or a callable returning one (or None).
        timeout: Socket timeout in seconds.
    """

    def __init__(
        self,
        url: str,
        token: str | TokenProvider | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._url = url
        self._token = token
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: OracleSettings) -> HttpMoveOracle:
        return cls(settings.url, token=settings.token, timeout=settings.timeout)

    @property
    def url(self) -> str:
        return self._url

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        token = self._token() if callable(self._token) else self._token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def propose(self, request: OracleRequest) -> str:
        body = json.dumps(request.to_payload()).encode("utf-8")
        try:
            http_request = urllib.request.Request(
                self._url, data=body, headers=self._headers(), method="POST",
            )
            with urllib.request.urlopen(http_request, timeout=self._timeout) as response:
                raw = response.read()
        except urllib.error.HTTPError as exc:
            raise TransportFailure(f"Oracle returned HTTP {exc.code}") from exc
        except (OSError, http.client.HTTPException, ValueError) as exc:
            raise TransportFailure(f"Oracle unreachable: {exc}") from exc

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise TransportFailure("Oracle response is not JSON") from exc

        if not isinstance(data, dict) or not isinstance(data.get("aiMove"), str):
            raise MalformedOracleReply(data)
        return data["aiMove"]


def play_oracle_turn(session: GameSession, oracle: MoveOracle) -> MoveResult:
    """Run one oracle exchange against the session.

    Transport failures, malformed replies and moves refused by the rules
    all leave the session in awaiting_oracle. A reply that arrives after
    the session moved on (reset, reload) is discarded.

    Args:
        session: Session waiting for the oracle.
        oracle: Oracle to ask.

    Returns:
        MoveResult describing what happened.
    """
    if session.phase is Phase.TERMINAL:
        return MoveResult(MoveOutcome.GAME_OVER, reason="game over")
    if session.phase is not Phase.AWAITING_ORACLE:
        return MoveResult(MoveOutcome.REJECTED, reason="not the oracle's turn")

    version = session.version
    request = session.oracle_request()
    try:
        reply = oracle.propose(request)
    except TransportFailure as exc:
        _LOGGER.warning("Oracle transport failure: %s", exc)
        return MoveResult(MoveOutcome.TRANSPORT_FAILURE, reason=str(exc))
    except MalformedOracleReply as exc:
        _LOGGER.warning("Oracle sent a malformed reply: %s", exc)
        return MoveResult(MoveOutcome.MALFORMED_REPLY, reason=str(exc))

    if session.version != version:
        _LOGGER.warning("Discarding stale oracle reply %r", reply)
        return MoveResult(MoveOutcome.REJECTED, reason="stale reply")

    return session.apply_oracle_move(reply)
