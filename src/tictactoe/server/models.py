"""
数据模型

Player / Lobby 的数据结构。可变字段的修改统一经过 registry 中的锁，
这里只负责保存状态和构造协议记录。
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, List, Optional

from tictactoe.shared.constants import INITIAL_RATING


@dataclass
class Player:
    player_id: str
    name: str
    session: Any = None  # ClientSession，测试中可以是任意带 send() 的对象
    rating: int = INITIAL_RATING
    wins: int = 0
    losses: int = 0
    ties: int = 0
    lobby_id: Optional[str] = None
    game_id: Optional[str] = None
    last_activity: float = field(default_factory=time.time)
    history: List[str] = field(default_factory=list)

    @property
    def total_games(self) -> int:
        return self.wins + self.losses + self.ties

    def send(self, msg) -> None:
        if self.session is not None:
            self.session.send(msg)

    def stats_record(self) -> tuple:
        return (self.player_id, self.name, self.wins, self.losses, self.ties)

    def describe(self) -> str:
        win_rate = self.wins / self.total_games * 100 if self.total_games else 0.0
        return (
            f"Name: {self.name} | Rating: {self.rating} | "
            f"W/L/T: {self.wins}/{self.losses}/{self.ties} | Win Rate: {win_rate:.1f}%"
        )
