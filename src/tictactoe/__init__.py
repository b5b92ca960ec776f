"""
Tic Tac Toe Arena - 井字棋联机对战服务器

A multiplayer tic tac toe lobby and matchmaking server built with Python sockets.
"""

__version__ = "0.1.0"
__author__ = "Tic Tac Toe Arena Team"
__license__ = "MIT"

# 导出主要组件
from . import client, server, shared

__all__ = ["client", "server", "shared", "__version__"]
