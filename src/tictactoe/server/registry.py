"""
进程级共享表：玩家、大厅、对局

每张表各有一把锁，单个 key 上的操作在锁内完成，保证并发下不丢失更新。
表内不做跨 key 事务；需要通知其他玩家时在锁外发送。
"""

from __future__ import annotations

import copy
import logging
import threading
import time
import uuid
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Tuple

from tictactoe.server.models import Player
from tictactoe.shared.constants import (
    LEADERBOARD_MIN_GAMES,
    LEADERBOARD_SIZE,
    MSG_LOBBY_CHAT,
    MSG_LOBBY_JOIN,
    MSG_LOBBY_LEAVE,
)
from tictactoe.shared.protocols import Message

if TYPE_CHECKING:
    from tictactoe.server.game import Game

logger = logging.getLogger(__name__)

OUTCOME_WIN = "win"
OUTCOME_LOSS = "loss"
OUTCOME_TIE = "tie"


class PlayerRegistry:
    """已连接玩家表，key 为服务器生成的 player_id"""

    def __init__(self):
        self._players: Dict[str, Player] = {}
        self._lock = threading.Lock()

    def register(self, player_id: str, name: str, session=None) -> Player:
        player = Player(player_id=player_id, name=name, session=session)
        with self._lock:
            self._players[player_id] = player
        return player

    def get(self, player_id: Optional[str]) -> Optional[Player]:
        if player_id is None:
            return None
        with self._lock:
            return self._players.get(player_id)

    def remove(self, player_id: str) -> Optional[Player]:
        """移除玩家；重复调用返回 None"""
        with self._lock:
            return self._players.pop(player_id, None)

    def name_of(self, player_id: Optional[str], default: str = "Unknown") -> str:
        player = self.get(player_id)
        return player.name if player else default

    def set_name(self, player_id: str, name: str) -> bool:
        with self._lock:
            player = self._players.get(player_id)
            if player is None:
                return False
            player.name = name
            return True

    def set_lobby(self, player_id: str, lobby_id: Optional[str]) -> None:
        with self._lock:
            player = self._players.get(player_id)
            if player is not None:
                player.lobby_id = lobby_id

    def set_game(self, player_id: str, game_id: Optional[str]) -> None:
        with self._lock:
            player = self._players.get(player_id)
            if player is not None:
                player.game_id = game_id

    def clear_game_if(self, player_id: str, game_id: str) -> bool:
        """只有当前对局仍是 game_id 时才清空"""
        with self._lock:
            player = self._players.get(player_id)
            if player is None or player.game_id != game_id:
                return False
            player.game_id = None
            return True

    def append_history(self, player_id: str, game_id: str) -> None:
        with self._lock:
            player = self._players.get(player_id)
            if player is not None:
                player.history.append(game_id)

    def record_result(self, player_id: str, outcome: str, rating_delta: int = 0) -> None:
        """原子地更新一名玩家的胜/负/平计数与积分"""
        with self._lock:
            player = self._players.get(player_id)
            if player is None:
                return
            if outcome == OUTCOME_WIN:
                player.wins += 1
            elif outcome == OUTCOME_LOSS:
                player.losses += 1
            elif outcome == OUTCOME_TIE:
                player.ties += 1
            else:
                raise ValueError(f"unknown outcome: {outcome}")
            player.rating += rating_delta

    def touch(self, player_id: str) -> None:
        with self._lock:
            player = self._players.get(player_id)
            if player is not None:
                player.last_activity = time.time()

    def snapshot(self) -> List[Player]:
        """返回所有玩家的浅拷贝，便于在锁外排序/格式化"""
        with self._lock:
            return [copy.copy(p) for p in self._players.values()]

    def leaderboard(self, min_games: int = LEADERBOARD_MIN_GAMES, size: int = LEADERBOARD_SIZE) -> List[Player]:
        ranked = [p for p in self.snapshot() if p.total_games >= min_games]
        ranked.sort(key=lambda p: p.rating, reverse=True)
        return ranked[:size]

    def __len__(self) -> int:
        with self._lock:
            return len(self._players)

    def __contains__(self, player_id: str) -> bool:
        with self._lock:
            return player_id in self._players


class Lobby:
    """聊天大厅：成员集合 + 广播"""

    def __init__(self, lobby_id: str, name: str, description: str, players: PlayerRegistry):
        self.lobby_id = lobby_id
        self.name = name
        self.description = description
        self.created_at = time.time()
        self._players = players
        self._members: Set[str] = set()
        self._lock = threading.Lock()

    @property
    def member_ids(self) -> List[str]:
        with self._lock:
            return list(self._members)

    def __len__(self) -> int:
        with self._lock:
            return len(self._members)

    def __contains__(self, player_id: str) -> bool:
        with self._lock:
            return player_id in self._members

    def join(self, player_id: str) -> None:
        with self._lock:
            self._members.add(player_id)
        name = self._players.name_of(player_id)
        self.broadcast(Message.build(MSG_LOBBY_JOIN, player_id, name))

    def leave(self, player_id: str) -> bool:
        """离开大厅；不在成员中时什么都不做"""
        with self._lock:
            if player_id not in self._members:
                return False
            self._members.discard(player_id)
        self.broadcast(Message.build(MSG_LOBBY_LEAVE, player_id))
        return True

    def broadcast(self, msg: Message, exclude: Optional[str] = None) -> None:
        for pid in self.member_ids:
            if pid == exclude:
                continue
            player = self._players.get(pid)
            # 成员可能已在断开清理中被移除
            if player is not None:
                player.send(msg)

    def broadcast_chat(self, sender_id: str, text: str) -> None:
        sender = self._players.get(sender_id)
        if sender is None:
            return
        self.broadcast(Message(MSG_LOBBY_CHAT, f"{sender.name}:{text}"))

    def member_records(self) -> List[tuple]:
        records = []
        for pid in self.member_ids:
            player = self._players.get(pid)
            if player is not None:
                records.append(player.stats_record())
        return records


class LobbyRegistry:
    def __init__(self, players: PlayerRegistry):
        self._players = players
        self._lobbies: Dict[str, Lobby] = {}
        self._default_id: Optional[str] = None
        self._lock = threading.Lock()

    def create(self, name: str, description: str) -> Lobby:
        lobby = Lobby(str(uuid.uuid4()), name, description, self._players)
        with self._lock:
            self._lobbies[lobby.lobby_id] = lobby
            if self._default_id is None:
                self._default_id = lobby.lobby_id
        logger.info(f"创建大厅: {name} ({lobby.lobby_id})")
        return lobby

    def get(self, lobby_id: Optional[str]) -> Optional[Lobby]:
        if lobby_id is None:
            return None
        with self._lock:
            return self._lobbies.get(lobby_id)

    @property
    def default(self) -> Lobby:
        with self._lock:
            if self._default_id is None:
                raise LookupError("no lobby has been created")
            return self._lobbies[self._default_id]

    def list(self) -> List[Tuple[str, str, str, int]]:
        with self._lock:
            lobbies = list(self._lobbies.values())
        return [(lb.lobby_id, lb.name, lb.description, len(lb)) for lb in lobbies]


class GameTable:
    """对局表；已结束的对局在保留期过后由维护线程清理"""

    def __init__(self):
        self._games: Dict[str, "Game"] = {}
        self._lock = threading.Lock()

    def add(self, game: "Game") -> None:
        with self._lock:
            self._games[game.game_id] = game

    def get(self, game_id: Optional[str]) -> Optional["Game"]:
        if game_id is None:
            return None
        with self._lock:
            return self._games.get(game_id)

    def remove(self, game_id: str) -> Optional["Game"]:
        with self._lock:
            return self._games.pop(game_id, None)

    def values(self) -> List["Game"]:
        with self._lock:
            return list(self._games.values())

    def active_count(self) -> int:
        return sum(1 for g in self.values() if not g.is_over)

    def expired(self, grace: float, now: Optional[float] = None) -> List["Game"]:
        now = time.time() if now is None else now
        return [g for g in self.values() if g.is_over and g.ended_at is not None and now - g.ended_at >= grace]

    def __len__(self) -> int:
        with self._lock:
            return len(self._games)
