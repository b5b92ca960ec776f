"""
Pytest configuration and shared fixtures for the tic tac toe server.
"""

import os
import sys
import threading

import pytest

# Add src to path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from tictactoe.server.orchestrator import SessionOrchestrator  # noqa: E402
from tictactoe.server.state import ServerState  # noqa: E402


class FakeSession:
    """Records every line sent to one player."""

    def __init__(self):
        self.lines = []
        self._lock = threading.Lock()

    def send(self, msg):
        with self._lock:
            self.lines.append(msg.to_line())

    def verbs(self):
        return [line.split(":", 1)[0] for line in self.lines]

    def last(self, prefix):
        for line in reversed(self.lines):
            if line.startswith(prefix):
                return line
        return None

    def clear(self):
        with self._lock:
            self.lines.clear()


@pytest.fixture
def state():
    """A fresh server state with only the default lobby."""
    return ServerState()


@pytest.fixture
def connect(state):
    """Register a player with a recording session; returns (player_id, session)."""

    def _connect(player_id, name=None):
        session = FakeSession()
        state.add_player(player_id, session, name=name or player_id)
        return player_id, session

    return _connect


@pytest.fixture
def orchestrator_for(state):
    """Build an orchestrator bound to a connected player's fake session."""

    def _build(player_id, session, on_quit=None):
        return SessionOrchestrator(state, player_id, session.send, on_quit=on_quit)

    return _build


@pytest.fixture
def started_game(state, connect):
    """Two players paired by the matchmaker.

    bob waits first, alice's request completes the pair, so alice is X.
    """
    alice, alice_session = connect("alice")
    bob, bob_session = connect("bob")
    state.matchmaker.find_game(bob)
    state.matchmaker.find_game(alice)
    game = state.games.get(state.players.get(alice).game_id)
    alice_session.clear()
    bob_session.clear()
    return game, alice_session, bob_session
