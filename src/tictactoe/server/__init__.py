"""
服务器端模块

负责处理客户端连接、大厅、匹配与对局逻辑。

模块组成：
- game: 棋盘判定与单局状态机
- models: 玩家数据模型
- registry: 玩家/大厅/对局共享表
- matchmaking: 等待集合与配对
- orchestrator: 协议命令分发
- network: TCP 会话、按行收发与断开清理

使用方式：
- 入口参见 tictactoe/server/main.py，启动 NetworkServer
"""

from . import game, matchmaking, models, network, orchestrator, registry, state

__all__ = ["game", "matchmaking", "models", "network", "orchestrator", "registry", "state"]
