"""
服务器主程序入口

启动游戏服务器，监听客户端连接。
"""

import logging
import os
import time

from tictactoe.shared.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    GAME_REAP_SECONDS,
    MAX_CLIENTS,
    STATS_INTERVAL,
)

logger = logging.getLogger(__name__)


def _env_number(name: str, default, cast=int):
    try:
        return cast(os.environ.get(name, default))
    except (TypeError, ValueError):
        logger.warning(f"环境变量 {name} 无效，使用默认值 {default}")
        return default


def setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler("server.log"), logging.StreamHandler()],
    )


def main():
    """启动服务器主函数"""
    setup_logging()
    logger.info("=" * 50)
    # 支持通过环境变量覆盖配置
    host = os.environ.get("HOST", DEFAULT_HOST)
    port = _env_number("PORT", DEFAULT_PORT)
    max_clients = _env_number("MAX_CLIENTS", MAX_CLIENTS)
    stats_interval = _env_number("STATS_INTERVAL", STATS_INTERVAL, float)
    reap_after = _env_number("GAME_REAP_SECONDS", GAME_REAP_SECONDS, float)

    logger.info("Tic Tac Toe 服务器启动中...")
    logger.info(f"监听地址: {host}:{port}，最大连接数: {max_clients}")
    logger.info("=" * 50)

    server = None
    try:
        from tictactoe.server.network import NetworkServer

        server = NetworkServer(host, port, max_clients=max_clients, stats_interval=stats_interval, reap_after=reap_after)
        server.start()

        logger.info("服务器运行中，按 Ctrl+C 停止")

        # 保持服务器运行
        while True:
            time.sleep(1)

    except KeyboardInterrupt:
        logger.info("服务器正在关闭...")
    except Exception as e:
        logger.error(f"服务器错误: {e}", exc_info=True)
    finally:
        if server is not None:
            server.stop()
        logger.info("服务器已停止")


if __name__ == "__main__":
    main()
