"""
单局对战状态机

Game 持有棋盘、回合标记、胜负结果与再来一局的握手状态。
所有会改变状态的入口（落子、掉线、再来一局）都在同一把锁里执行，
同一局内同时到达的两次落子只会有一次生效。
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import List, Optional, Tuple

from tictactoe.server.errors import MoveError, RematchError
from tictactoe.server.game.board import find_winner, format_line, is_full, new_board, render
from tictactoe.server.registry import OUTCOME_LOSS, OUTCOME_TIE, OUTCOME_WIN, PlayerRegistry
from tictactoe.shared.constants import (
    BOARD_SIZE,
    DISCONNECT_LOSS_RATING_DELTA,
    DISCONNECT_WIN_RATING_DELTA,
    EMPTY_CELL,
    LOSS_RATING_DELTA,
    MARKER_O,
    MARKER_X,
    MSG_BOARD,
    MSG_GAME_CHAT,
    MSG_GAME_OVER,
    MSG_GAME_STARTED,
    MSG_OPPONENT_DISCONNECTED,
    MSG_REMATCH_REQUESTED,
    MSG_REMATCH_SENT,
    MSG_YOUR_TURN,
    TIE,
    WIN_RATING_DELTA,
)
from tictactoe.shared.protocols import Message

logger = logging.getLogger(__name__)


class GameState(str, Enum):
    IN_PROGRESS = "in_progress"
    OVER = "over"


class RematchState(str, Enum):
    IDLE = "idle"
    REQUESTED = "requested"
    RESOLVED = "resolved"


class GameStatus(str, Enum):
    """GAME_HISTORY 中使用的对局状态；PLAYER1 即执 X 的一方"""

    IN_PROGRESS = "IN_PROGRESS"
    TIE = "TIE"
    PLAYER1_WON = "PLAYER1_WON"
    PLAYER2_WON = "PLAYER2_WON"


class Game:
    def __init__(self, game_id: str, x_player_id: str, o_player_id: str, players: PlayerRegistry):
        self.game_id = game_id
        self.x_player_id = x_player_id
        self.o_player_id = o_player_id
        self._players = players
        # 记录开局时的名字，玩家离线后历史记录仍可显示
        self.x_name = players.name_of(x_player_id)
        self.o_name = players.name_of(o_player_id)

        self.board: List[str] = new_board()
        self.current_turn = MARKER_X
        self.state = GameState.IN_PROGRESS
        self.winner: Optional[str] = None
        self.winning_line: Optional[Tuple[int, int, int]] = None
        self.rematch_state = RematchState.IDLE
        self.rematch_requester: Optional[str] = None
        self.started_at = time.time()
        self.ended_at: Optional[float] = None

        self._lock = threading.Lock()

    # 查询
    @property
    def is_over(self) -> bool:
        return self.state is GameState.OVER

    @property
    def board_string(self) -> str:
        return render(self.board)

    @property
    def status(self) -> GameStatus:
        if not self.is_over:
            return GameStatus.IN_PROGRESS
        if self.winner is None:
            return GameStatus.TIE
        if self.winner == self.x_player_id:
            return GameStatus.PLAYER1_WON
        return GameStatus.PLAYER2_WON

    def is_participant(self, player_id: str) -> bool:
        return player_id in (self.x_player_id, self.o_player_id)

    def marker_of(self, player_id: str) -> Optional[str]:
        if player_id == self.x_player_id:
            return MARKER_X
        if player_id == self.o_player_id:
            return MARKER_O
        return None

    def player_for(self, marker: str) -> str:
        return self.x_player_id if marker == MARKER_X else self.o_player_id

    def opponent_of(self, player_id: str) -> str:
        return self.o_player_id if player_id == self.x_player_id else self.x_player_id

    def opponent_name(self, player_id: str) -> str:
        fallback = self.o_name if player_id == self.x_player_id else self.x_name
        return self._players.name_of(self.opponent_of(player_id), default=fallback)

    # 发送
    def _send(self, player_id: str, msg: Message) -> None:
        player = self._players.get(player_id)
        if player is not None:
            player.send(msg)

    def _broadcast(self, msg: Message) -> None:
        self._send(self.x_player_id, msg)
        self._send(self.o_player_id, msg)

    def _send_board(self) -> None:
        self._broadcast(Message(MSG_BOARD, self.board_string))

    # 生命周期
    def start(self) -> None:
        """推送开局消息；开局前已因掉线结束的对局不再推送"""
        with self._lock:
            if self.is_over:
                return
            self._send(self.x_player_id, Message.build(MSG_GAME_STARTED, MARKER_X, self.game_id, self.opponent_name(self.x_player_id)))
            self._send(self.o_player_id, Message.build(MSG_GAME_STARTED, MARKER_O, self.game_id, self.opponent_name(self.o_player_id)))
            self._send(self.x_player_id, Message(MSG_YOUR_TURN))
            self._send_board()

    def make_move(self, player_id: str, position: int) -> None:
        """落子；任何一项校验失败都抛出 MoveError，棋盘与回合不变"""
        with self._lock:
            if self.is_over:
                raise MoveError("Game is over")
            marker = self.marker_of(player_id)
            if marker is None or marker != self.current_turn:
                raise MoveError("Not your turn")
            if not 0 <= position < BOARD_SIZE:
                raise MoveError("Invalid position")
            if self.board[position] != EMPTY_CELL:
                raise MoveError("Position already taken")

            self.board[position] = marker
            self._send_board()
            self._evaluate(marker)

    def _evaluate(self, marker: str) -> None:
        result = find_winner(self.board)
        if result is not None:
            winning_marker, line = result
            self._finish(self.player_for(winning_marker))
            self.winning_line = line
            self._broadcast(Message.build(MSG_GAME_OVER, winning_marker, format_line(line)))
            loser_id = self.opponent_of(self.winner)
            self._players.record_result(self.winner, OUTCOME_WIN, WIN_RATING_DELTA)
            self._players.record_result(loser_id, OUTCOME_LOSS, LOSS_RATING_DELTA)
            logger.info(f"对局 {self.game_id} 结束: {winning_marker} 获胜 ({format_line(line)})")
        elif is_full(self.board):
            self._finish(None)
            self._broadcast(Message.build(MSG_GAME_OVER, TIE))
            self._players.record_result(self.x_player_id, OUTCOME_TIE)
            self._players.record_result(self.o_player_id, OUTCOME_TIE)
            logger.info(f"对局 {self.game_id} 结束: 平局")
        else:
            self.current_turn = MARKER_O if marker == MARKER_X else MARKER_X
            self._send(self.player_for(self.current_turn), Message(MSG_YOUR_TURN))

    def _finish(self, winner: Optional[str]) -> None:
        self.state = GameState.OVER
        self.winner = winner
        self.ended_at = time.time()

    def player_disconnected(self, player_id: str) -> bool:
        """参与者掉线判负；返回本次调用是否结束了对局"""
        with self._lock:
            if self.is_over or not self.is_participant(player_id):
                return False
            remaining_id = self.opponent_of(player_id)
            self._finish(remaining_id)

            self._players.record_result(player_id, OUTCOME_LOSS, DISCONNECT_LOSS_RATING_DELTA)
            self._players.clear_game_if(player_id, self.game_id)
            self._players.record_result(remaining_id, OUTCOME_WIN, DISCONNECT_WIN_RATING_DELTA)
            # 留下的一方保留 game_id，仍可查询结果或清理
            self._send(remaining_id, Message(MSG_OPPONENT_DISCONNECTED))
            logger.info(f"对局 {self.game_id} 因玩家 {player_id} 掉线结束")
            return True

    def broadcast_chat(self, sender_id: str, text: str) -> None:
        sender = self._players.get(sender_id)
        if sender is None:
            return
        self._broadcast(Message(MSG_GAME_CHAT, f"{sender.name}:{text}"))

    # 再来一局握手：IDLE -> REQUESTED -> RESOLVED，拒绝后回到 IDLE
    def request_rematch(self, player_id: str) -> str:
        with self._lock:
            if not self.is_over or not self.is_participant(player_id):
                raise RematchError("Invalid game for rematch")
            if self.rematch_state is RematchState.RESOLVED:
                raise RematchError("Invalid game for rematch")
            if self.rematch_state is RematchState.REQUESTED:
                raise RematchError("Rematch already requested")

            opponent_id = self.opponent_of(player_id)
            opponent = self._players.get(opponent_id)
            if opponent is None or opponent.game_id != self.game_id:
                raise RematchError("Opponent not available for rematch")
            requester = self._players.get(player_id)

            self.rematch_state = RematchState.REQUESTED
            self.rematch_requester = player_id
            opponent.send(Message.build(MSG_REMATCH_REQUESTED, requester.name if requester else "Unknown"))
            self._send(player_id, Message.build(MSG_REMATCH_SENT, opponent.name))
            return opponent_id

    def accept_rematch(self, player_id: str) -> str:
        """由被邀请方接受；返回发起方 id，之后状态不可再变"""
        with self._lock:
            if not self.is_over or not self.is_participant(player_id):
                raise RematchError("Invalid game state for rematch")
            requester_id = self._pending_requester(player_id)
            requester = self._players.get(requester_id)
            if requester is None or requester.game_id != self.game_id:
                raise RematchError("Requester not available")
            self.rematch_state = RematchState.RESOLVED
            return requester_id

    def reopen_rematch(self) -> None:
        """接受后无法开新局时撤销 RESOLVED，握手回到 IDLE"""
        with self._lock:
            if self.rematch_state is RematchState.RESOLVED:
                self.rematch_state = RematchState.IDLE
                self.rematch_requester = None

    def decline_rematch(self, player_id: str) -> str:
        with self._lock:
            if not self.is_participant(player_id):
                raise RematchError("No rematch request to decline")
            requester_id = self._pending_requester(player_id, "No rematch request to decline")
            self.rematch_state = RematchState.IDLE
            self.rematch_requester = None
            return requester_id

    def _pending_requester(self, player_id: str, message: str = "No rematch request to accept") -> str:
        if self.rematch_state is not RematchState.REQUESTED or self.rematch_requester == player_id:
            raise RematchError(message)
        return self.rematch_requester
