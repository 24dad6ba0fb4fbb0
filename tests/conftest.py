"""Shared test fixtures with dual-mode support (scripted vs real oracle).

Usage:
    pytest tests/                  # Fast, scripted oracles (no Stockfish)
    pytest tests/ --e2e            # Also run tests against real Stockfish

Fixtures:
    rules          - python-chess rules adapter.
    session        - Fresh GameSession, human plays white.
    fake_oracle    - Factory for a ScriptedOracle replaying canned replies.
    fake_rules     - Factory for python-chess rules with switchable overrides.
    enable_validation - Sets CHESS_SESSION_VALIDATE=1 for schema validation.
"""

from __future__ import annotations

import os

import pytest

from chess_session.models import OracleRequest
from chess_session.rules import PythonChessRules
from chess_session.session import GameSession


# ---------------------------------------------------------------------------
# CLI option and marker registration
# ---------------------------------------------------------------------------


def pytest_addoption(parser):
    """Register --e2e CLI flag for real Stockfish tests."""
    parser.addoption(
        "--e2e",
        action="store_true",
        default=False,
        help="Run with real Stockfish engine (no mocks).",
    )


def pytest_configure(config):
    """Register the e2e marker."""
    config.addinivalue_line(
        "markers", "e2e: mark test as end-to-end (requires real Stockfish)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip e2e tests unless --e2e is passed."""
    if config.getoption("--e2e"):
        return
    skip_e2e = pytest.mark.skip(reason="needs --e2e (real Stockfish)")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


# ---------------------------------------------------------------------------
# Oracle doubles
# ---------------------------------------------------------------------------


class ScriptedOracle:
    """Oracle that replays canned replies in order.

    A reply that is an exception instance is raised instead of returned.
    Every request received is kept in ``requests``.
    """

    def __init__(self, *replies) -> None:
        self._replies = list(replies)
        self.requests: list[OracleRequest] = []

    def propose(self, request: OracleRequest) -> str:
        self.requests.append(request)
        if not self._replies:
            raise AssertionError("ScriptedOracle ran out of replies")
        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture()
def fake_oracle():
    """Factory: fake_oracle('e7e5', TransportFailure('down'), ...)."""
    return ScriptedOracle


class FakeRules(PythonChessRules):
    """Real rules with switchable overrides.

    ``draw`` forces is_draw, and ``apply_calls`` counts apply requests.
    """

    def __init__(self, draw: bool = False) -> None:
        self.draw = draw
        self.apply_calls = 0

    def apply(self, position, move):
        self.apply_calls += 1
        return super().apply(position, move)

    def is_draw(self, position) -> bool:
        return self.draw or super().is_draw(position)


@pytest.fixture()
def fake_rules():
    """Factory: fake_rules(draw=True)."""
    return FakeRules


# ---------------------------------------------------------------------------
# Session fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def rules() -> PythonChessRules:
    return PythonChessRules()


@pytest.fixture()
def session(rules) -> GameSession:
    return GameSession(rules=rules)


# ---------------------------------------------------------------------------
# Schema validation fixture
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def enable_validation():
    """Set CHESS_SESSION_VALIDATE=1 for the test.

    Restores the original env var value after the test.
    """
    original = os.environ.get("CHESS_SESSION_VALIDATE")
    os.environ["CHESS_SESSION_VALIDATE"] = "1"
    yield
    if original is None:
        os.environ.pop("CHESS_SESSION_VALIDATE", None)
    else:
        os.environ["CHESS_SESSION_VALIDATE"] = original
