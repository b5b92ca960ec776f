"""
命令行客户端

把标准输入的每一行原样发送给服务器，并打印服务器推送的每一行。
输入 QUIT 或 EOF 时退出。
"""

import os
import sys
import threading

from tictactoe.client.network import NetworkClient
from tictactoe.shared.constants import CMD_QUIT, DEFAULT_HOST, DEFAULT_PORT


def _print_events(client: NetworkClient) -> None:
    while client.connected or not client.events.empty():
        msg = client.next_event(timeout=0.5)
        if msg is not None:
            print(msg.to_line(), flush=True)


def main():
    host = os.environ.get("HOST", DEFAULT_HOST)
    try:
        port = int(os.environ.get("PORT", DEFAULT_PORT))
    except ValueError:
        port = DEFAULT_PORT

    client = NetworkClient(host, port)
    if not client.connect():
        print(f"连接失败: {host}:{port}", file=sys.stderr)
        return 1

    printer = threading.Thread(target=_print_events, args=(client,), daemon=True)
    printer.start()
    try:
        for line in sys.stdin:
            line = line.strip()
            if not line:
                continue
            client.send_line(line)
            if line == CMD_QUIT:
                break
    except KeyboardInterrupt:
        client.quit()
    finally:
        client.close()
        printer.join(timeout=1.0)
    return 0


if __name__ == "__main__":
    sys.exit(main())
