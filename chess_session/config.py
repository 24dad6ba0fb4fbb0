"""Environment-driven settings for the move oracle."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_ORACLE_URL = "http://localhost:8080/api/ai/chessNextMove"
DEFAULT_ORACLE_TIMEOUT = 10.0


@dataclass(frozen=True)
class OracleSettings:
    """Where and how to reach the remote move oracle."""

    url: str = DEFAULT_ORACLE_URL
    token: str | None = None
    timeout: float = DEFAULT_ORACLE_TIMEOUT

    @classmethod
    def from_env(cls, environ: dict | None = None) -> OracleSettings:
        """Build settings from CHESS_ORACLE_URL/TOKEN/TIMEOUT.

        Raises:
            ValueError: If CHESS_ORACLE_TIMEOUT is not a positive number.
        """
        env = os.environ if environ is None else environ
        timeout_text = env.get("CHESS_ORACLE_TIMEOUT")
        timeout = DEFAULT_ORACLE_TIMEOUT
        if timeout_text:
            timeout = float(timeout_text)
            if timeout <= 0:
                raise ValueError(f"CHESS_ORACLE_TIMEOUT must be positive: {timeout_text}")
        return cls(
            url=env.get("CHESS_ORACLE_URL") or DEFAULT_ORACLE_URL,
            token=env.get("CHESS_ORACLE_TOKEN") or None,
            timeout=timeout,
        )
