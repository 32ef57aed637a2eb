"""
依赖库缓存 - 基础设施层

@require 指向的库文件只下载一次，缓存到 dependencies.json（按 URL 索引），
注入时放在需要它们的脚本之前。
"""
import json
import os
import threading
import time
from dataclasses import dataclass, asdict
from typing import Callable, Dict, Iterable, List, Optional

from scriptdock.utils.logger import get_logger
from .record_store import write_json_atomic

logger = get_logger(__name__)


@dataclass
class CachedDependency:
    """缓存的依赖库"""
    url: str
    code: str
    last_updated: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'CachedDependency':
        return cls(url=data["url"], code=data["code"], last_updated=int(data.get("last_updated", 0)))


class DependencyCache:
    """依赖库缓存管理器"""

    DEFAULT_FILENAME = "dependencies.json"

    def __init__(self, base_dir: Optional[str] = None, filename: str = DEFAULT_FILENAME,
                 clock: Callable[[], float] = time.time):
        """
        Args:
            base_dir: 数据目录，None 表示仅在内存中缓存（测试用）
            filename: 缓存文件名
            clock: 时间来源
        """
        self.filepath = os.path.join(base_dir, filename) if base_dir else None
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, CachedDependency] = self._load()

    def _load(self) -> Dict[str, CachedDependency]:
        if not self.filepath or not os.path.exists(self.filepath):
            return {}
        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return {url: CachedDependency.from_dict(item) for url, item in data.items()}
        except (OSError, json.JSONDecodeError, KeyError, AttributeError) as e:
            logger.error(f"[DependencyCache] 读取 {self.filepath} 失败: {e}")
            return {}

    def _save(self):
        if not self.filepath:
            return
        os.makedirs(os.path.dirname(self.filepath), exist_ok=True)
        write_json_atomic(self.filepath, {url: dep.to_dict() for url, dep in self._entries.items()})

    def get(self, url: str) -> Optional[CachedDependency]:
        with self._lock:
            return self._entries.get(url)

    def __contains__(self, url: str) -> bool:
        with self._lock:
            return url in self._entries

    def ensure(self, urls: Iterable[str], fetch_text: Callable[[str], str]) -> List[str]:
        """
        确保所有依赖都已缓存

        已缓存的 URL 不会重新下载。任一下载失败时异常原样抛出，
        此前成功下载的条目仍会保留。

        Args:
            urls: 依赖库 URL
            fetch_text: 下载函数 url -> 文本，失败时抛出 FetchError

        Returns:
            本次新下载的 URL 列表
        """
        fetched: List[str] = []
        try:
            for url in urls:
                if url in self:
                    continue
                code = fetch_text(url)
                with self._lock:
                    self._entries[url] = CachedDependency(url=url, code=code, last_updated=int(self._clock()))
                fetched.append(url)
                logger.info(f"[DependencyCache] 已缓存依赖: {url}")
        finally:
            if fetched:
                with self._lock:
                    self._save()
        return fetched
