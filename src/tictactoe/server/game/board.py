"""3x3 棋盘工具：胜负判定与序列化"""

from typing import List, Optional, Sequence, Tuple

from tictactoe.shared.constants import BOARD_SIZE, EMPTY_CELL

# 判定顺序固定：三行、三列、两条对角线
WIN_LINES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


def new_board() -> List[str]:
    return [EMPTY_CELL] * BOARD_SIZE


def find_winner(board: Sequence[str]) -> Optional[Tuple[str, Tuple[int, int, int]]]:
    """返回 (marker, line)；没有连成一线时返回 None"""
    for a, b, c in WIN_LINES:
        if board[a] != EMPTY_CELL and board[a] == board[b] == board[c]:
            return board[a], (a, b, c)
    return None


def is_full(board: Sequence[str]) -> bool:
    return EMPTY_CELL not in board


def render(board: Sequence[str]) -> str:
    return "".join(board)


def format_line(line: Sequence[int]) -> str:
    return "-".join(str(i) for i in line)
