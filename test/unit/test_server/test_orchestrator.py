"""
Tests for protocol command dispatch.
"""

import pytest

from tictactoe.server.orchestrator import SessionOrchestrator


@pytest.fixture
def alice(connect, orchestrator_for):
    pid, session = connect("alice")
    session.clear()
    return orchestrator_for(pid, session), session


@pytest.fixture
def bob(connect, orchestrator_for):
    pid, session = connect("bob")
    session.clear()
    return orchestrator_for(pid, session), session


def test_unknown_command(alice):
    orch, session = alice
    orch.dispatch("DANCE")
    assert session.lines == ["ERROR:Unknown command"]


def test_name_change_broadcasts_update(state, alice, bob):
    orch, session = alice
    _, bob_session = bob
    orch.dispatch("NAME:  Alicia ")
    assert state.players.get("alice").name == "Alicia"
    assert bob_session.lines[-1] == "PLAYER_UPDATE:alice:name:Alicia"
    assert session.lines[-1] == "PLAYER_UPDATE:alice:name:Alicia"


@pytest.mark.parametrize("line", ["NAME:", "NAME:   ", "NAME:a:b", "NAME:a|b", "NAME:" + "x" * 33, "NAME"])
def test_invalid_names(state, alice, line):
    orch, session = alice
    orch.dispatch(line)
    assert session.lines == ["ERROR:Invalid name"]
    assert state.players.get("alice").name == "alice"


def test_chat_alias_and_lobby_chat(alice, bob):
    orch, _ = alice
    _, bob_session = bob
    orch.dispatch("CHAT:hello")
    orch.dispatch("LOBBY_CHAT:again")
    assert bob_session.lines == ["LOBBY_CHAT:alice:hello", "LOBBY_CHAT:alice:again"]


def test_empty_chat_rejected(alice):
    orch, session = alice
    orch.dispatch("LOBBY_CHAT:")
    assert session.lines == ["ERROR:Message cannot be empty"]


def test_game_chat_without_game(alice):
    orch, session = alice
    orch.dispatch("GAME_CHAT:hi")
    assert session.lines == ["ERROR:You are not in a game"]


def test_list_lobbies(state, alice, bob):
    orch, session = alice
    orch.dispatch("LIST_LOBBIES")
    lobby = state.default_lobby
    assert session.lines == [f"LOBBY_LIST:{lobby.lobby_id}:Main Lobby:The main lobby for all players:2|"]


def test_join_unknown_lobby(state, alice):
    orch, session = alice
    orch.dispatch("JOIN_LOBBY:nope")
    assert session.lines == ["ERROR:Lobby does not exist"]
    assert state.players.get("alice").lobby_id == state.default_lobby.lobby_id


def test_join_other_lobby_moves_membership(state, alice, bob):
    orch, session = alice
    _, bob_session = bob
    other = state.lobbies.create("Pros", "High rated")
    orch.dispatch(f"JOIN_LOBBY:{other.lobby_id}")

    assert "alice" not in state.default_lobby
    assert "alice" in other
    assert state.players.get("alice").lobby_id == other.lobby_id
    assert bob_session.lines == ["LOBBY_LEAVE:alice"]
    assert session.lines == [
        "LOBBY_JOIN:alice:alice",
        f"JOINED_LOBBY:{other.lobby_id}:Pros",
        "PLAYER_LIST:alice:alice:0:0:0|",
    ]


def test_join_current_lobby_does_not_churn(state, alice, bob):
    orch, session = alice
    _, bob_session = bob
    orch.dispatch(f"JOIN_LOBBY:{state.default_lobby.lobby_id}")
    assert bob_session.lines == []
    assert session.lines[0] == f"JOINED_LOBBY:{state.default_lobby.lobby_id}:Main Lobby"


def test_find_game_twice_cancels(alice):
    orch, session = alice
    orch.dispatch("FIND_GAME")
    orch.dispatch("FIND_GAME")
    assert session.lines == ["WAITING", "ERROR:Canceled matchmaking"]


def test_find_game_while_playing(started_game, orchestrator_for):
    game, alice_session, _ = started_game
    orch = orchestrator_for("alice", alice_session)
    orch.dispatch("FIND_GAME")
    assert alice_session.lines == ["ERROR:You are already in a game"]


def test_move_without_game(alice):
    orch, session = alice
    orch.dispatch("MOVE:4")
    assert session.lines == ["ERROR:You are not in a game"]


def test_move_flow(started_game, orchestrator_for):
    game, alice_session, bob_session = started_game
    alice = orchestrator_for("alice", alice_session)
    bob = orchestrator_for("bob", bob_session)

    alice.dispatch("MOVE:abc")
    assert alice_session.lines[-1] == "ERROR:Invalid position format"
    alice.dispatch("MOVE:4")
    assert bob_session.lines[-2:] == ["BOARD:    X    ", "YOUR_TURN"]
    bob.dispatch("MOVE:4")
    assert bob_session.lines[-1] == "ERROR:Position already taken"
    alice.dispatch("MOVE:0")
    assert alice_session.lines[-1] == "ERROR:Not your turn"
    bob.dispatch("MOVE:9")
    assert bob_session.lines[-1] == "ERROR:Invalid position"
    assert game.board_string == "    X    "


def test_move_on_reaped_game(state, started_game, orchestrator_for):
    game, alice_session, _ = started_game
    state.games.remove(game.game_id)
    orch = orchestrator_for("alice", alice_session)
    orch.dispatch("MOVE:0")
    assert alice_session.lines == ["ERROR:Game not found"]
    assert state.players.get("alice").game_id is None


def test_game_chat(started_game, orchestrator_for):
    game, alice_session, bob_session = started_game
    orchestrator_for("bob", bob_session).dispatch("GAME_CHAT:good luck")
    assert alice_session.lines == ["GAME_CHAT:bob:good luck"]


def finish_top_row(alice, bob):
    for orch, pos in [(alice, 0), (bob, 3), (alice, 1), (bob, 4), (alice, 2)]:
        orch.dispatch(f"MOVE:{pos}")


def test_rematch_round_trip(state, started_game, orchestrator_for):
    game, alice_session, bob_session = started_game
    alice = orchestrator_for("alice", alice_session)
    bob = orchestrator_for("bob", bob_session)
    finish_top_row(alice, bob)

    bob.dispatch(f"REMATCH:{game.game_id}")
    assert alice_session.lines[-1] == "REMATCH_REQUESTED:bob"
    assert bob_session.lines[-1] == "REMATCH_SENT:alice"

    bob.dispatch("REMATCH_ACCEPT")
    assert bob_session.lines[-1] == "ERROR:No rematch request to accept"

    alice.dispatch("REMATCH_ACCEPT")
    new_game = state.games.get(state.players.get("alice").game_id)
    assert new_game is not game
    assert new_game.x_player_id == "bob"
    assert "REMATCH_ACCEPTED" in alice_session.lines
    assert "REMATCH_ACCEPTED" in bob_session.lines


def test_rematch_decline(started_game, orchestrator_for):
    game, alice_session, bob_session = started_game
    alice = orchestrator_for("alice", alice_session)
    bob = orchestrator_for("bob", bob_session)
    finish_top_row(alice, bob)

    alice.dispatch(f"REMATCH:{game.game_id}")
    bob.dispatch("REMATCH_DECLINE")
    assert alice_session.lines[-1] == "REMATCH_DECLINED"
    assert game.rematch_requester is None


def test_rematch_invalid_game(started_game, orchestrator_for):
    game, alice_session, _ = started_game
    alice = orchestrator_for("alice", alice_session)
    alice.dispatch("REMATCH:unknown")
    alice.dispatch(f"REMATCH:{game.game_id}")
    assert alice_session.lines == ["ERROR:Invalid game for rematch"] * 2


def test_rematch_accept_without_game(alice):
    orch, session = alice
    orch.dispatch("REMATCH_ACCEPT")
    orch.dispatch("REMATCH_DECLINE")
    assert session.lines == ["ERROR:No active game for rematch", "ERROR:No rematch request to decline"]


def test_get_stats(state, alice):
    orch, session = alice
    state.players.record_result("alice", "win", 15)
    orch.dispatch("GET_STATS")
    assert session.lines == ["PLAYER_STATS:1:0:0:1215"]


def test_get_leaderboard(state, alice):
    orch, session = alice
    player = state.players.get("alice")
    player.wins, player.losses, player.ties, player.rating = 3, 1, 1, 1235
    orch.dispatch("GET_LEADERBOARD")
    assert session.lines == ["LEADERBOARD:1:alice:1235:3:1:1|"]


def test_get_history(state, started_game, orchestrator_for):
    game, alice_session, bob_session = started_game
    alice = orchestrator_for("alice", alice_session)
    alice.dispatch("GET_HISTORY")
    assert alice_session.lines[-1] == f"GAME_HISTORY:{game.game_id}:bob:IN_PROGRESS|"

    state.remove_player("bob")
    alice.dispatch("GET_HISTORY")
    # opponent left: name recorded at game start is used
    assert alice_session.lines[-1] == f"GAME_HISTORY:{game.game_id}:bob:PLAYER1_WON|"


def test_history_keeps_last_ten(state, alice):
    orch, session = alice
    state.players.get("alice").history.extend(f"g{i}" for i in range(12))
    orch.dispatch("GET_HISTORY")
    # none of these ids are in the game table
    assert session.lines == ["GAME_HISTORY:"]


def test_quit_calls_back(state, connect):
    calls = []
    pid, session = connect("carol")
    orch = SessionOrchestrator(state, pid, session.send, on_quit=lambda: calls.append(state.remove_player(pid)))
    orch.dispatch("QUIT")
    orch.dispatch("QUIT")
    assert calls == [True, False]


def test_handler_crash_is_reported(monkeypatch, alice):
    orch, session = alice

    def boom(payload):
        raise RuntimeError("bad")

    monkeypatch.setitem(orch._handlers, "GET_STATS", boom)
    orch.dispatch("GET_STATS")
    assert session.lines == ["ERROR:Internal server error"]


def test_removed_player_gets_error(state, alice):
    orch, session = alice
    state.players.remove("alice")
    orch.dispatch("GET_STATS")
    assert session.lines == ["ERROR:Player not found"]
