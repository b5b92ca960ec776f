"""
简单的客户端网络封装：负责连接服务器、收发消息并提供事件队列。
"""
from __future__ import annotations

import socket
import threading
import time
from queue import Empty, SimpleQueue
from typing import List, Optional

from tictactoe.shared.constants import (
    BUFFER_SIZE,
    CMD_FIND_GAME,
    CMD_GAME_CHAT,
    CMD_GET_HISTORY,
    CMD_GET_LEADERBOARD,
    CMD_GET_STATS,
    CMD_JOIN_LOBBY,
    CMD_LIST_LOBBIES,
    CMD_LOBBY_CHAT,
    CMD_MOVE,
    CMD_NAME,
    CMD_QUIT,
    CMD_REMATCH,
    CMD_REMATCH_ACCEPT,
    CMD_REMATCH_DECLINE,
    DEFAULT_HOST,
    DEFAULT_PORT,
    MSG_CONNECTED,
)
from tictactoe.shared.protocols import Message


class NetworkClient:
    """线程驱动的轻量客户端"""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
        self.host = host
        self.port = port
        self.sock: Optional[socket.socket] = None
        self._recv_thread: Optional[threading.Thread] = None
        self._running = threading.Event()
        self._buf = bytearray()
        self.events: SimpleQueue[Message] = SimpleQueue()
        self.player_id: Optional[str] = None

    @property
    def connected(self) -> bool:
        return bool(self.sock) and self._running.is_set()

    def connect(self, timeout: float = 5.0) -> bool:
        """连接服务器。"""
        if self.connected:
            return True
        try:
            self.sock = socket.create_connection((self.host, self.port), timeout=timeout)
            # 连接成功后取消超时，由接收线程阻塞读取
            self.sock.settimeout(None)
            self._running.set()
            self._recv_thread = threading.Thread(target=self._recv_loop, daemon=True)
            self._recv_thread.start()
            return True
        except OSError:
            self.close()
            return False

    # 命令
    def set_name(self, name: str) -> None:
        self.send_line(Message.build(CMD_NAME, name).to_line())

    def send_chat(self, text: str) -> None:
        if text:
            self.send_line(Message(CMD_LOBBY_CHAT, text).to_line())

    def send_game_chat(self, text: str) -> None:
        if text:
            self.send_line(Message(CMD_GAME_CHAT, text).to_line())

    def list_lobbies(self) -> None:
        self.send_line(CMD_LIST_LOBBIES)

    def join_lobby(self, lobby_id: str) -> None:
        self.send_line(Message.build(CMD_JOIN_LOBBY, lobby_id).to_line())

    def find_game(self) -> None:
        self.send_line(CMD_FIND_GAME)

    def move(self, position: int) -> None:
        self.send_line(Message.build(CMD_MOVE, position).to_line())

    def request_rematch(self, game_id: str) -> None:
        self.send_line(Message.build(CMD_REMATCH, game_id).to_line())

    def accept_rematch(self) -> None:
        self.send_line(CMD_REMATCH_ACCEPT)

    def decline_rematch(self) -> None:
        self.send_line(CMD_REMATCH_DECLINE)

    def get_stats(self) -> None:
        self.send_line(CMD_GET_STATS)

    def get_leaderboard(self) -> None:
        self.send_line(CMD_GET_LEADERBOARD)

    def get_history(self) -> None:
        self.send_line(CMD_GET_HISTORY)

    def quit(self) -> None:
        self.send_line(CMD_QUIT)

    # 事件
    def next_event(self, timeout: Optional[float] = None) -> Optional[Message]:
        try:
            return self.events.get(timeout=timeout)
        except Empty:
            return None

    def wait_for(self, verb: str, timeout: float = 5.0) -> Optional[Message]:
        """丢弃其他事件，直到收到指定动词的消息或超时"""
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            msg = self.next_event(remaining)
            if msg is not None and msg.verb == verb:
                return msg

    def drain_events(self) -> List[Message]:
        items: List[Message] = []
        while True:
            try:
                items.append(self.events.get_nowait())
            except Empty:
                break
        return items

    def close(self) -> None:
        self._running.clear()
        try:
            if self.sock:
                try:
                    self.sock.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass
                self.sock.close()
        finally:
            self.sock = None

    # 内部方法
    def send_line(self, line: str) -> None:
        if not self.sock:
            return
        try:
            self.sock.sendall((line + "\n").encode("utf-8"))
        except OSError:
            self.close()

    def _recv_loop(self) -> None:
        try:
            while self._running.is_set() and self.sock:
                data = self.sock.recv(BUFFER_SIZE)
                if not data:
                    break
                self._buf.extend(data)
                while True:
                    try:
                        idx = self._buf.index(ord("\n"))
                    except ValueError:
                        break
                    raw = bytes(self._buf[:idx])
                    del self._buf[: idx + 1]
                    self._handle_raw(raw)
        except (OSError, AttributeError):
            pass
        finally:
            self._running.clear()

    def _handle_raw(self, raw: bytes) -> None:
        msg = Message.from_line(raw.decode("utf-8", errors="replace"))
        if msg.verb == MSG_CONNECTED:
            self.player_id = msg.payload
        self.events.put(msg)


__all__ = ["NetworkClient"]
