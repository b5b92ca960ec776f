"""
行协议定义

每条消息是一行文本：``VERB`` 或 ``VERB:payload``。payload 内部的字段以 ":" 分隔，
列表类负载由若干条以 "|" 结尾的记录组成，例如::

    PLAYER_LIST:id1:alice:3:1:0|id2:bob:0:0:0|
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

FIELD_SEP = ":"
RECORD_SEP = "|"


class Message:
    """单条协议消息（动词 + 可选负载）"""

    __slots__ = ("verb", "payload")

    def __init__(self, verb: str, payload: Optional[str] = None):
        self.verb = verb
        self.payload = payload

    @classmethod
    def build(cls, verb: str, *fields) -> "Message":
        """由若干字段拼出消息；没有字段时只发送动词本身"""
        if not fields:
            return cls(verb)
        return cls(verb, FIELD_SEP.join(str(f) for f in fields))

    @classmethod
    def records(cls, verb: str, rows: Iterable[Sequence]) -> "Message":
        """列表类消息：每条记录以 "|" 结尾，空列表时 payload 为空串"""
        payload = "".join(FIELD_SEP.join(str(f) for f in row) + RECORD_SEP for row in rows)
        return cls(verb, payload)

    @classmethod
    def from_line(cls, line: str) -> "Message":
        line = line.rstrip("\r\n")
        verb, sep, payload = line.partition(FIELD_SEP)
        return cls(verb, payload if sep else None)

    def to_line(self) -> str:
        if self.payload is None:
            return self.verb
        return f"{self.verb}{FIELD_SEP}{self.payload}"

    def fields(self, maxsplit: int = -1) -> List[str]:
        if self.payload is None:
            return []
        return self.payload.split(FIELD_SEP, maxsplit)

    def rows(self) -> List[List[str]]:
        if not self.payload:
            return []
        return [r.split(FIELD_SEP) for r in self.payload.split(RECORD_SEP) if r]

    def __eq__(self, other) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self.verb == other.verb and self.payload == other.payload

    def __repr__(self) -> str:
        return f"Message({self.to_line()!r})"


__all__ = ["Message", "FIELD_SEP", "RECORD_SEP"]
