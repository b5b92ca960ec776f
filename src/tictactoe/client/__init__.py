"""
客户端模块

无界面的协议客户端：负责连接服务器、发送命令并把服务器推送放入事件队列。

模块组成：
- network: 线程驱动的行协议客户端 NetworkClient
- main: 命令行客户端，逐行转发标准输入
"""

from . import network

__all__ = ["network"]
