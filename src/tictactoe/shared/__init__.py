"""
共享模块

存放客户端和服务器共用的代码，如常量、协议定义等。

组件说明：
- constants: 网络端口、服务器上限、积分规则、消息动词
- protocols: 基于行的文本协议（VERB:field:field...），Message 负责编解码

提示：
- 每条消息为一行 UTF-8 文本，以 "\n" 结尾
- 列表类负载（玩家列表、排行榜等）由 "|" 分隔的记录组成，记录内字段用 ":" 分隔
"""

from . import constants, protocols

__all__ = ["constants", "protocols"]
