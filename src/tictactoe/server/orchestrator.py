"""
会话命令分发

每个连接一个 SessionOrchestrator。命令行按第一个 ":" 拆成动词与负载，
再查表交给对应的处理函数。处理函数抛出的 GameError 统一转成 ``ERROR:<message>``，
连接保持打开。
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from tictactoe.server.errors import GameError, ProtocolError, RematchError
from tictactoe.server.matchmaking import CANCELED
from tictactoe.server.models import Player
from tictactoe.server.state import ServerState
from tictactoe.shared.constants import (
    CMD_CHAT,
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
    FORBIDDEN_NAME_CHARS,
    HISTORY_SIZE,
    MAX_NAME_LENGTH,
    MSG_ERROR,
    MSG_GAME_HISTORY,
    MSG_JOINED_LOBBY,
    MSG_LEADERBOARD,
    MSG_LOBBY_LIST,
    MSG_PLAYER_LIST,
    MSG_PLAYER_STATS,
    MSG_PLAYER_UPDATE,
    MSG_REMATCH_DECLINED,
)
from tictactoe.shared.protocols import Message

logger = logging.getLogger(__name__)


class SessionOrchestrator:
    def __init__(self, state: ServerState, player_id: str, send: Callable[[Message], None], on_quit: Optional[Callable[[], None]] = None):
        self.state = state
        self.player_id = player_id
        self.send = send
        self._on_quit = on_quit
        self._handlers: Dict[str, Callable[[Optional[str]], None]] = {
            CMD_NAME: self.handle_name,
            CMD_CHAT: self.handle_lobby_chat,
            CMD_LOBBY_CHAT: self.handle_lobby_chat,
            CMD_GAME_CHAT: self.handle_game_chat,
            CMD_LIST_LOBBIES: self.handle_list_lobbies,
            CMD_JOIN_LOBBY: self.handle_join_lobby,
            CMD_FIND_GAME: self.handle_find_game,
            CMD_MOVE: self.handle_move,
            CMD_REMATCH: self.handle_rematch,
            CMD_REMATCH_ACCEPT: self.handle_rematch_accept,
            CMD_REMATCH_DECLINE: self.handle_rematch_decline,
            CMD_GET_STATS: self.handle_get_stats,
            CMD_GET_LEADERBOARD: self.handle_get_leaderboard,
            CMD_GET_HISTORY: self.handle_get_history,
            CMD_QUIT: self.handle_quit,
        }

    @property
    def player(self) -> Player:
        player = self.state.players.get(self.player_id)
        if player is None:
            raise ProtocolError("Player not found")
        return player

    def error(self, message: str) -> None:
        self.send(Message(MSG_ERROR, message))

    def dispatch(self, line: str) -> None:
        msg = Message.from_line(line)
        logger.debug(f"收到命令: {msg.verb} from={self.player_id}")
        handler = self._handlers.get(msg.verb)
        if handler is None:
            self.error("Unknown command")
            return
        try:
            handler(msg.payload)
        except GameError as e:
            self.error(e.message)
        except Exception:
            logger.error(f"处理命令 {msg.verb} 出错 (player={self.player_id})", exc_info=True)
            self.error("Internal server error")
        self.state.players.touch(self.player_id)

    # 玩家信息
    def handle_name(self, payload: Optional[str]) -> None:
        name = (payload or "").strip()
        if not name or len(name) > MAX_NAME_LENGTH or any(c in name for c in FORBIDDEN_NAME_CHARS):
            raise ProtocolError("Invalid name")
        if not self.state.players.set_name(self.player_id, name):
            raise ProtocolError("Player not found")
        lobby = self.state.lobbies.get(self.player.lobby_id)
        if lobby is not None:
            lobby.broadcast(Message.build(MSG_PLAYER_UPDATE, self.player_id, "name", name))
        logger.info(f"玩家 {self.player_id} 改名为: {name}")

    # 聊天
    def handle_lobby_chat(self, payload: Optional[str]) -> None:
        if not payload:
            raise ProtocolError("Message cannot be empty")
        lobby = self.state.lobbies.get(self.player.lobby_id)
        if lobby is None:
            raise ProtocolError("You are not in a lobby")
        lobby.broadcast_chat(self.player_id, payload)

    def handle_game_chat(self, payload: Optional[str]) -> None:
        if not payload:
            raise ProtocolError("Message cannot be empty")
        game = self.state.games.get(self.player.game_id)
        if game is None:
            raise ProtocolError("You are not in a game")
        game.broadcast_chat(self.player_id, payload)

    # 大厅
    def handle_list_lobbies(self, payload: Optional[str]) -> None:
        self.send(Message.records(MSG_LOBBY_LIST, self.state.lobbies.list()))

    def handle_join_lobby(self, payload: Optional[str]) -> None:
        target = self.state.lobbies.get((payload or "").strip())
        if target is None:
            raise ProtocolError("Lobby does not exist")
        player = self.player
        if player.lobby_id != target.lobby_id:
            current = self.state.lobbies.get(player.lobby_id)
            if current is not None:
                current.leave(self.player_id)
            self.state.players.set_lobby(self.player_id, target.lobby_id)
            target.join(self.player_id)
        self.send_lobby_welcome(target)

    def send_lobby_welcome(self, lobby) -> None:
        self.send(Message.build(MSG_JOINED_LOBBY, lobby.lobby_id, lobby.name))
        self.send(Message.records(MSG_PLAYER_LIST, lobby.member_records()))

    # 对局
    def handle_find_game(self, payload: Optional[str]) -> None:
        if self.state.matchmaker.find_game(self.player_id) == CANCELED:
            self.error("Canceled matchmaking")

    def handle_move(self, payload: Optional[str]) -> None:
        player = self.player
        if player.game_id is None:
            raise ProtocolError("You are not in a game")
        game = self.state.games.get(player.game_id)
        if game is None:
            self.state.players.clear_game_if(self.player_id, player.game_id)
            raise ProtocolError("Game not found")
        try:
            position = int((payload or "").strip())
        except ValueError:
            raise ProtocolError("Invalid position format")
        game.make_move(self.player_id, position)

    def handle_rematch(self, payload: Optional[str]) -> None:
        game = self.state.games.get((payload or "").strip())
        if game is None:
            raise RematchError("Invalid game for rematch")
        game.request_rematch(self.player_id)

    def handle_rematch_accept(self, payload: Optional[str]) -> None:
        game = self.state.games.get(self.player.game_id)
        if game is None:
            raise RematchError("No active game for rematch")
        self.state.matchmaker.accept_rematch(game, self.player_id)

    def handle_rematch_decline(self, payload: Optional[str]) -> None:
        game = self.state.games.get(self.player.game_id)
        if game is None:
            raise RematchError("No rematch request to decline")
        requester = self.state.players.get(game.decline_rematch(self.player_id))
        if requester is not None:
            requester.send(Message(MSG_REMATCH_DECLINED))

    # 统计
    def handle_get_stats(self, payload: Optional[str]) -> None:
        p = self.player
        self.send(Message.build(MSG_PLAYER_STATS, p.wins, p.losses, p.ties, p.rating))

    def handle_get_leaderboard(self, payload: Optional[str]) -> None:
        rows = [
            (rank, p.name, p.rating, p.wins, p.losses, p.ties)
            for rank, p in enumerate(self.state.players.leaderboard(), start=1)
        ]
        self.send(Message.records(MSG_LEADERBOARD, rows))

    def handle_get_history(self, payload: Optional[str]) -> None:
        rows = []
        for game_id in self.player.history[-HISTORY_SIZE:]:
            game = self.state.games.get(game_id)
            if game is None:
                continue
            rows.append((game_id, game.opponent_name(self.player_id), game.status.value))
        self.send(Message.records(MSG_GAME_HISTORY, rows))

    def handle_quit(self, payload: Optional[str]) -> None:
        if self._on_quit is not None:
            self._on_quit()
