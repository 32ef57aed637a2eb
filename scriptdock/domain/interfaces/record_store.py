"""
记录存储接口

核心把持久化视为一个键值记录存储，只需要整体读写。
"""

from typing import Any, Dict, Protocol


class IRecordStore(Protocol):
    """键值记录存储: key 为记录 id，value 为可 JSON 序列化的字典"""

    def load(self) -> Dict[str, Dict[str, Any]]:
        ...

    def save(self, records: Dict[str, Dict[str, Any]]) -> None:
        ...

    @property
    def location(self) -> str:
        """存储位置（仅供展示）"""
        ...
