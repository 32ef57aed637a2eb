"""
脚本头部元数据
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ScriptMetadata:
    """从脚本头部注释块中解析出的元数据，任意字段都可能缺失"""
    name: Optional[str] = None
    version: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    requires: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not any((self.name, self.version, self.description, self.author, self.requires))

    @property
    def library_urls(self) -> List[str]:
        """requires 中指向库文件的 http(s) 地址"""
        return [r for r in self.requires if r.startswith(("https://", "http://"))]
