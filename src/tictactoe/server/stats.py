"""
服务器统计

全局计数器（总对局数、当前连接数）与周期性统计日志。
"""

from __future__ import annotations

import threading
import time
from datetime import datetime


class ServerStats:
    def __init__(self):
        self.started_at = time.time()
        self._games_played = 0
        self._connections = 0
        self._lock = threading.Lock()

    @property
    def games_played(self) -> int:
        with self._lock:
            return self._games_played

    @property
    def connections(self) -> int:
        with self._lock:
            return self._connections

    def game_created(self) -> None:
        with self._lock:
            self._games_played += 1

    def try_acquire_connection(self, limit: int) -> bool:
        """连接数未达上限时占用一个名额"""
        with self._lock:
            if self._connections >= limit:
                return False
            self._connections += 1
            return True

    def release_connection(self) -> None:
        with self._lock:
            self._connections = max(0, self._connections - 1)

    def uptime(self, now: float = None) -> str:
        elapsed = int((time.time() if now is None else now) - self.started_at)
        days, rest = divmod(elapsed, 86400)
        hours, rest = divmod(rest, 3600)
        minutes = rest // 60
        return f"{days} days, {hours} hours, {minutes} minutes"

    def report(self, active_games: int, players: int, waiting: int) -> str:
        started = datetime.fromtimestamp(self.started_at).strftime("%Y-%m-%d %H:%M:%S")
        return (
            "\n----- SERVER STATISTICS -----\n"
            f"Server started: {started}\n"
            f"Uptime: {self.uptime()}\n"
            f"Current connections: {self.connections}\n"
            f"Total games played: {self.games_played}\n"
            f"Active games: {active_games}\n"
            f"Total registered players: {players}\n"
            f"Players waiting for match: {waiting}\n"
            "-----------------------------"
        )
