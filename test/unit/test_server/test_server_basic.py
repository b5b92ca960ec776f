"""
Basic server tests.
"""

from tictactoe.server import main as server_main


def test_server_main_is_callable():
    assert callable(server_main.main)


def test_env_number_falls_back(monkeypatch):
    monkeypatch.setenv("PORT", "not-a-port")
    assert server_main._env_number("PORT", 5567) == 5567
    monkeypatch.setenv("PORT", "6000")
    assert server_main._env_number("PORT", 5567) == 6000
    monkeypatch.delenv("STATS_INTERVAL", raising=False)
    assert server_main._env_number("STATS_INTERVAL", 60, float) == 60.0
