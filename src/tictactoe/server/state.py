"""
服务器共享状态

把玩家表、大厅表、对局表、匹配器和统计计数器组合在一起，
并提供唯一的玩家清理入口 remove_player。
"""

from __future__ import annotations

import logging
from typing import List, Optional

from tictactoe.server.game import Game
from tictactoe.server.matchmaking import Matchmaker
from tictactoe.server.models import Player
from tictactoe.server.registry import GameTable, LobbyRegistry, PlayerRegistry
from tictactoe.server.stats import ServerStats
from tictactoe.shared.constants import (
    DEFAULT_LOBBY_DESCRIPTION,
    DEFAULT_LOBBY_NAME,
    DEFAULT_NAME_PREFIX,
    GAME_REAP_SECONDS,
)

logger = logging.getLogger(__name__)


def default_name(player_id: str) -> str:
    return f"{DEFAULT_NAME_PREFIX}{player_id[:4]}"


class ServerState:
    def __init__(self, reap_after: float = GAME_REAP_SECONDS):
        self.reap_after = reap_after
        self.stats = ServerStats()
        self.players = PlayerRegistry()
        self.lobbies = LobbyRegistry(self.players)
        self.games = GameTable()
        self.matchmaker = Matchmaker(self.players, self.games, self.stats)
        self.default_lobby = self.lobbies.create(DEFAULT_LOBBY_NAME, DEFAULT_LOBBY_DESCRIPTION)

    def add_player(self, player_id: str, session=None, name: Optional[str] = None) -> Player:
        """注册玩家并放入默认大厅（会向大厅广播 LOBBY_JOIN）"""
        player = self.players.register(player_id, name or default_name(player_id), session)
        self.players.set_lobby(player_id, self.default_lobby.lobby_id)
        self.default_lobby.join(player_id)
        return player

    def remove_player(self, player_id: str) -> bool:
        """断开清理：退出匹配、离开大厅、对局判负、从玩家表删除。

        重复调用是安全的，只有第一次会产生效果。
        """
        player = self.players.get(player_id)
        if player is None:
            return False
        self.matchmaker.withdraw(player_id)

        lobby = self.lobbies.get(player.lobby_id)
        if lobby is not None:
            lobby.leave(player_id)

        game = self.games.get(player.game_id)
        if game is not None:
            game.player_disconnected(player_id)

        removed = self.players.remove(player_id)
        if removed is not None:
            logger.info(f"玩家 ({player_id}) 已断开 - {removed.describe()}")
        return removed is not None

    def reap_finished_games(self, now: Optional[float] = None) -> List[Game]:
        """删除结束超过保留期的对局，并清空仍指向它们的玩家 game_id"""
        reaped = []
        for game in self.games.expired(self.reap_after, now):
            if self.games.remove(game.game_id) is None:
                continue
            for pid in (game.x_player_id, game.o_player_id):
                self.players.clear_game_if(pid, game.game_id)
            reaped.append(game)
        if reaped:
            logger.info(f"清理已结束对局 {len(reaped)} 个")
        return reaped

    def stats_report(self) -> str:
        return self.stats.report(
            active_games=self.games.active_count(),
            players=len(self.players),
            waiting=len(self.matchmaker),
        )
