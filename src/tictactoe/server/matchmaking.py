"""
匹配器

进程内唯一的等待集合。find_game 与创建对局在同一把锁里完成，
保证等待集合中的玩家都没有进行中的对局，且一个玩家不会同时进入两局。
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import List, Optional

from tictactoe.server.errors import AlreadyInGameError, ProtocolError, RematchError
from tictactoe.server.game import Game
from tictactoe.server.registry import GameTable, PlayerRegistry
from tictactoe.server.stats import ServerStats
from tictactoe.shared.constants import MSG_REMATCH_ACCEPTED, MSG_WAITING
from tictactoe.shared.protocols import Message

logger = logging.getLogger(__name__)

WAITING = "waiting"
CANCELED = "canceled"
STARTED = "started"


class Matchmaker:
    def __init__(self, players: PlayerRegistry, games: GameTable, stats: ServerStats):
        self._players = players
        self._games = games
        self._stats = stats
        # dict 保留插入顺序，先到先配对
        self._waiting: dict = {}
        self._lock = threading.Lock()

    @property
    def waiting_ids(self) -> List[str]:
        with self._lock:
            return list(self._waiting)

    def __len__(self) -> int:
        with self._lock:
            return len(self._waiting)

    def is_waiting(self, player_id: str) -> bool:
        with self._lock:
            return player_id in self._waiting

    def find_game(self, player_id: str) -> str:
        """返回 WAITING / CANCELED / STARTED 之一"""
        with self._lock:
            player = self._players.get(player_id)
            if player is None:
                raise ProtocolError("Player not found")
            current = self._games.get(player.game_id)
            if current is not None and not current.is_over:
                raise AlreadyInGameError()
            if player.game_id is not None:
                # 已结束的对局在重新匹配时释放
                self._players.set_game(player_id, None)

            if player_id in self._waiting:
                del self._waiting[player_id]
                logger.info(f"玩家 {player.name} ({player_id}) 取消匹配")
                return CANCELED

            if not self._waiting:
                self._waiting[player_id] = True
                player.send(Message(MSG_WAITING))
                logger.info(f"玩家 {player.name} ({player_id}) 等待对手")
                return WAITING

            # 简化：不按积分匹配，直接取最早等待的玩家
            opponent_id = next(iter(self._waiting))
            del self._waiting[opponent_id]
            game = self._create_game(player_id, opponent_id)
        game.start()
        return STARTED

    def withdraw(self, player_id: str) -> bool:
        with self._lock:
            return self._waiting.pop(player_id, None) is not None

    def accept_rematch(self, game: Game, player_id: str) -> Game:
        """被邀请方接受再来一局：发起方执 X 开新局"""
        with self._lock:
            requester_id = game.accept_rematch(player_id)
            requester = self._players.get(requester_id)
            accepter = self._players.get(player_id)
            if requester is None or accepter is None:
                game.reopen_rematch()
                raise RematchError("Requester not available")
            self._waiting.pop(requester_id, None)
            self._waiting.pop(player_id, None)
            accepter.send(Message(MSG_REMATCH_ACCEPTED))
            requester.send(Message(MSG_REMATCH_ACCEPTED))
            new_game = self._create_game(requester_id, player_id)
        new_game.start()
        return new_game

    def _create_game(self, x_player_id: str, o_player_id: str) -> Game:
        # 调用方持有 self._lock
        game = Game(str(uuid.uuid4()), x_player_id, o_player_id, self._players)
        self._games.add(game)
        for pid in (x_player_id, o_player_id):
            self._players.set_game(pid, game.game_id)
            self._players.append_history(pid, game.game_id)
        self._stats.game_created()
        logger.info(f"对局 {game.game_id} 创建: {game.x_name} vs {game.o_name}")
        return game

    def create_game(self, x_player_id: str, o_player_id: str, start: bool = True) -> Game:
        with self._lock:
            for pid in (x_player_id, o_player_id):
                player = self._players.get(pid)
                if player is None:
                    raise ProtocolError("Player not found")
                current: Optional[Game] = self._games.get(player.game_id)
                if current is not None and not current.is_over:
                    raise AlreadyInGameError()
                self._waiting.pop(pid, None)
            game = self._create_game(x_player_id, o_player_id)
        if start:
            game.start()
        return game
