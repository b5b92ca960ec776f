"""
错误类型

所有协议误用类错误都继承 GameError，message 即为发回客户端的 ``ERROR:`` 文本。
"""


class GameError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ProtocolError(GameError):
    """命令格式错误或当前状态下不允许的命令"""


class AlreadyInGameError(GameError):
    def __init__(self, message: str = "You are already in a game"):
        super().__init__(message)


class MoveError(GameError):
    """落子被拒绝，棋盘与回合保持不变"""


class RematchError(GameError):
    pass
