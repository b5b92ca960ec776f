"""
常量定义

定义服务器与客户端使用的各种常量。
"""

# 网络配置
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5567
BUFFER_SIZE = 4096
LISTEN_BACKLOG = 32
MAX_LINE_LENGTH = 128 * 1024  # 单行命令上限（字节）
OUTBOX_SIZE = 1024  # 每个连接待发送消息上限
CLOSE_FLUSH_TIMEOUT = 1.0  # 关闭前等待发送队列清空（秒）

# 服务器配置
MAX_CLIENTS = 100
STATS_INITIAL_DELAY = 5  # 秒
STATS_INTERVAL = 60  # 秒
GAME_REAP_SECONDS = 600  # 对局结束后保留多久（秒）

# 大厅
DEFAULT_LOBBY_NAME = "Main Lobby"
DEFAULT_LOBBY_DESCRIPTION = "The main lobby for all players"

# 玩家
DEFAULT_NAME_PREFIX = "Player"
MAX_NAME_LENGTH = 32
FORBIDDEN_NAME_CHARS = (":", "|")

# 积分规则
INITIAL_RATING = 1200
WIN_RATING_DELTA = 15
LOSS_RATING_DELTA = -10
DISCONNECT_WIN_RATING_DELTA = 10
DISCONNECT_LOSS_RATING_DELTA = -15

# 排行榜 / 历史
LEADERBOARD_MIN_GAMES = 5
LEADERBOARD_SIZE = 10
HISTORY_SIZE = 10

# 棋盘
BOARD_SIZE = 9
EMPTY_CELL = " "
MARKER_X = "X"
MARKER_O = "O"

# 客户端 -> 服务器
CMD_NAME = "NAME"
CMD_CHAT = "CHAT"
CMD_LOBBY_CHAT = "LOBBY_CHAT"
CMD_GAME_CHAT = "GAME_CHAT"
CMD_LIST_LOBBIES = "LIST_LOBBIES"
CMD_JOIN_LOBBY = "JOIN_LOBBY"
CMD_FIND_GAME = "FIND_GAME"
CMD_MOVE = "MOVE"
CMD_REMATCH = "REMATCH"
CMD_REMATCH_ACCEPT = "REMATCH_ACCEPT"
CMD_REMATCH_DECLINE = "REMATCH_DECLINE"
CMD_GET_STATS = "GET_STATS"
CMD_GET_LEADERBOARD = "GET_LEADERBOARD"
CMD_GET_HISTORY = "GET_HISTORY"
CMD_QUIT = "QUIT"

# 服务器 -> 客户端
MSG_CONNECTED = "CONNECTED"
MSG_SERVER_INFO = "SERVER_INFO"
MSG_JOINED_LOBBY = "JOINED_LOBBY"
MSG_PLAYER_LIST = "PLAYER_LIST"
MSG_PLAYER_UPDATE = "PLAYER_UPDATE"
MSG_LOBBY_LIST = "LOBBY_LIST"
MSG_LOBBY_JOIN = "LOBBY_JOIN"
MSG_LOBBY_LEAVE = "LOBBY_LEAVE"
MSG_LOBBY_CHAT = "LOBBY_CHAT"
MSG_WAITING = "WAITING"
MSG_GAME_STARTED = "GAME_STARTED"
MSG_YOUR_TURN = "YOUR_TURN"
MSG_BOARD = "BOARD"
MSG_GAME_OVER = "GAME_OVER"
MSG_GAME_CHAT = "GAME_CHAT"
MSG_OPPONENT_DISCONNECTED = "OPPONENT_DISCONNECTED"
MSG_REMATCH_REQUESTED = "REMATCH_REQUESTED"
MSG_REMATCH_SENT = "REMATCH_SENT"
MSG_REMATCH_ACCEPTED = "REMATCH_ACCEPTED"
MSG_REMATCH_DECLINED = "REMATCH_DECLINED"
MSG_PLAYER_STATS = "PLAYER_STATS"
MSG_LEADERBOARD = "LEADERBOARD"
MSG_GAME_HISTORY = "GAME_HISTORY"
MSG_ERROR = "ERROR"

TIE = "TIE"
