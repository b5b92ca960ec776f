"""
Tests for the per-connection session: outbound queue and line framing.
"""

import socket

import pytest

from tictactoe.server.network import ClientSession, LineTooLongError
from tictactoe.shared.constants import MAX_LINE_LENGTH
from tictactoe.shared.protocols import Message


@pytest.fixture
def sock_pair():
    server_side, client_side = socket.socketpair()
    client_side.settimeout(3)
    yield server_side, client_side
    client_side.close()
    server_side.close()


def read_lines(sock, count):
    data = b""
    while data.count(b"\n") < count:
        chunk = sock.recv(4096)
        if not chunk:
            break
        data += chunk
    return data.decode("utf-8").splitlines()


def test_sends_keep_fifo_order(sock_pair):
    server_side, client_side = sock_pair
    sess = ClientSession(server_side, ("test", 0), player_id="p1")
    sess.start()
    for i in range(50):
        sess.send(Message.build("LOBBY_CHAT", "alice", i))
    assert read_lines(client_side, 50) == [f"LOBBY_CHAT:alice:{i}" for i in range(50)]
    sess.close()


def test_send_does_not_wait_for_the_peer(sock_pair):
    server_side, _ = sock_pair
    sess = ClientSession(server_side, ("test", 0), player_id="p1")
    # no writer running: send only enqueues, even far beyond the socket buffer
    for _ in range(200):
        sess.send(Message("LOBBY_CHAT", "x" * 8192))


def test_close_flushes_pending_lines(sock_pair):
    server_side, client_side = sock_pair
    sess = ClientSession(server_side, ("test", 0), player_id="p1")
    sess.start()
    sess.send(Message("ERROR", "Line too long"))
    sess.close()
    assert read_lines(client_side, 1) == ["ERROR:Line too long"]


def test_full_outbox_drops_the_connection(sock_pair):
    server_side, client_side = sock_pair
    sess = ClientSession(server_side, ("test", 0), player_id="p1", outbox_size=2)
    for _ in range(3):
        sess.send(Message("WAITING"))
    assert client_side.recv(16) == b""


def test_send_after_close_is_dropped(sock_pair):
    server_side, _ = sock_pair
    sess = ClientSession(server_side, ("test", 0), player_id="p1")
    assert sess.mark_closed()
    sess.send(Message("WAITING"))
    assert sess._outbox.empty()


def test_read_lines_splits_and_strips():
    sess = ClientSession(None, ("test", 0), player_id="p1")
    assert list(sess.read_lines(b"GET_STATS\r\nMOVE:")) == ["GET_STATS"]
    assert list(sess.read_lines(b"4\n")) == ["MOVE:4"]


def test_unterminated_line_over_limit():
    sess = ClientSession(None, ("test", 0), player_id="p1")
    with pytest.raises(LineTooLongError):
        list(sess.read_lines(b"x" * (MAX_LINE_LENGTH + 1)))


def test_terminated_line_over_limit():
    sess = ClientSession(None, ("test", 0), player_id="p1")
    with pytest.raises(LineTooLongError):
        list(sess.read_lines(b"x" * (MAX_LINE_LENGTH + 1) + b"\n"))


def test_line_at_limit_is_accepted():
    sess = ClientSession(None, ("test", 0), player_id="p1")
    line = "LOBBY_CHAT:" + "y" * (MAX_LINE_LENGTH - len("LOBBY_CHAT:"))
    assert list(sess.read_lines(line.encode() + b"\n")) == [line]
