"""
脚本记录模型

包含:
- ScriptOrigin: 远程脚本的来源信息（本地脚本没有）
- ScriptRecord: 持久化与注入的基本单位
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# 旧版平铺格式中属于来源信息的字段
_LEGACY_ORIGIN_KEYS = ("url", "version", "description", "author", "requires",
                       "last_updated", "last_fetch_error")


@dataclass
class ScriptOrigin:
    """远程脚本来源"""
    url: str
    version: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    requires: List[str] = field(default_factory=list)
    last_updated: Optional[int] = None       # 最近一次成功获取（Unix 秒）
    last_fetch_error: Optional[str] = None   # 最近一次失败信息，成功后清空

    def to_dict(self) -> Dict[str, Any]:
        # 未设置的可选字段直接省略，而不是写成 "" 或 null
        data: Dict[str, Any] = {"url": self.url, "requires": list(self.requires)}
        for key in ("version", "description", "author", "last_updated", "last_fetch_error"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScriptOrigin':
        return cls(
            url=data["url"],
            version=data.get("version"),
            description=data.get("description"),
            author=data.get("author"),
            requires=list(data.get("requires") or []),
            last_updated=data.get("last_updated"),
            last_fetch_error=data.get("last_fetch_error"),
        )


@dataclass
class ScriptRecord:
    """
    用户脚本记录

    origin 为 None 表示本地脚本，否则为远程脚本。
    order 在所有记录（不只是启用的）之间排序，相同时按 id 决胜。
    """
    id: str
    name: str
    code: str
    enabled: bool = True
    order: int = 0
    origin: Optional[ScriptOrigin] = None

    @property
    def is_remote(self) -> bool:
        return self.origin is not None

    @property
    def requires(self) -> List[str]:
        return list(self.origin.requires) if self.origin else []

    @property
    def sort_key(self):
        return (self.order, self.id)

    def copy(self) -> 'ScriptRecord':
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "enabled": self.enabled,
            "order": self.order,
        }
        if self.origin is not None:
            data["origin"] = self.origin.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScriptRecord':
        """
        从持久化数据构建记录

        同时兼容旧版平铺格式（url / version 等位于顶层）。
        """
        origin_data = data.get("origin")
        if origin_data is None and data.get("url"):
            origin_data = {key: data[key] for key in _LEGACY_ORIGIN_KEYS if key in data}

        return cls(
            id=data["id"],
            name=data.get("name") or "Unnamed Script",
            code=data.get("code", ""),
            enabled=bool(data.get("enabled", True)),
            order=int(data.get("order", 0)),
            origin=ScriptOrigin.from_dict(origin_data) if origin_data else None,
        )
