"""
游戏逻辑模块

实现井字棋对局的核心逻辑：棋盘判定、回合控制、胜负结算与再来一局握手。
"""

from .board import WIN_LINES, find_winner, is_full, new_board, render
from .match import Game, GameState, GameStatus, RematchState

__all__ = [
    "Game",
    "GameState",
    "GameStatus",
    "RematchState",
    "WIN_LINES",
    "find_winner",
    "is_full",
    "new_board",
    "render",
]
