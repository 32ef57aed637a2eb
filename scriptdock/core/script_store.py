"""
脚本存储

持有全部脚本记录（进程内唯一的共享可变资源），提供增删改查与刷新。
每次修改都在返回前写入持久化存储。

并发规则:
- 同一 id 上的修改通过按 id 的锁串行化
- 不同 id 的修改可以并发
- 落盘串行化，并且总是写入最新的已提交状态
"""

import threading
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from scriptdock.core.metadata_parser import parse_metadata
from scriptdock.domain.entities import ScriptOrigin, ScriptRecord
from scriptdock.domain.interfaces import IRecordStore
from scriptdock.exceptions import DuplicateScript, FetchError, NotFound, NotRemoteScript, RefreshFailure
from scriptdock.infrastructure.http.remote_fetcher import PLACEHOLDER_NAME, FetchedScript, RemoteFetcher
from scriptdock.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RefreshResult:
    """刷新结果: 失败时 error 有值，record 保持原内容"""
    record: ScriptRecord
    changed: bool = False
    error: Optional[RefreshFailure] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class ScriptStore:
    """
    脚本存储

    职责:
    - 加载 / 保存脚本记录
    - 本地添加、URL 添加、启用切换、删除、排序、刷新
    - 按 id 串行化并发修改
    """

    def __init__(self, backend: IRecordStore, fetcher: RemoteFetcher):
        """
        初始化脚本存储

        Args:
            backend: 键值记录存储
            fetcher: 远程获取器
        """
        self.backend = backend
        self.fetcher = fetcher

        self._state_lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._locks_guard = threading.Lock()
        self._id_locks: Dict[str, threading.Lock] = {}

        self._records: Dict[str, ScriptRecord] = self._load()

    # ==================== 内部工具 ====================

    def _load(self) -> Dict[str, ScriptRecord]:
        records: Dict[str, ScriptRecord] = {}
        for key, data in self.backend.load().items():
            try:
                record = ScriptRecord.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"[ScriptStore] 跳过无法解析的记录 {key}: {e}")
                continue
            records[record.id] = record
        logger.info(f"[ScriptStore] 已加载 {len(records)} 个脚本")
        return records

    def _lock_for(self, script_id: str) -> threading.Lock:
        """
        取得记录级锁；未知 id 直接抛出 NotFound，不为其创建锁

        锁内仍需再次 _require，记录可能在等待期间被删除。
        """
        with self._locks_guard:
            lock = self._id_locks.get(script_id)
            if lock is None:
                with self._state_lock:
                    self._require(script_id)
                lock = self._id_locks[script_id] = threading.Lock()
            return lock

    def _require(self, script_id: str) -> ScriptRecord:
        """调用方须持有 _state_lock"""
        record = self._records.get(script_id)
        if record is None:
            raise NotFound(script_id)
        return record

    def _next_order(self) -> int:
        """调用方须持有 _state_lock"""
        if not self._records:
            return 0
        return max(r.order for r in self._records.values()) + 1

    def _find_by_url(self, url: str) -> Optional[ScriptRecord]:
        """调用方须持有 _state_lock"""
        for record in self._records.values():
            if record.origin is not None and record.origin.url == url:
                return record
        return None

    def _commit(self):
        # 在落盘锁内取快照，保证最后一次写入的是最新状态
        with self._flush_lock:
            with self._state_lock:
                snapshot = {rid: r.to_dict() for rid, r in self._records.items()}
            self.backend.save(snapshot)

    # ==================== 查询 ====================

    def list(self) -> List[ScriptRecord]:
        """按 (order, id) 排序的全部记录快照"""
        with self._state_lock:
            records = [r.copy() for r in self._records.values()]
        return sorted(records, key=lambda r: r.sort_key)

    def get(self, script_id: str) -> ScriptRecord:
        with self._state_lock:
            return self._require(script_id).copy()

    @property
    def location(self) -> str:
        return self.backend.location

    # ==================== 修改 ====================

    def add_local(self, name: str, code: str) -> ScriptRecord:
        """
        添加本地脚本

        Args:
            name: 显示名称，为空时使用头部 @name
            code: 脚本全文

        Returns:
            新记录（启用，order = 当前最大值 + 1）
        """
        display_name = (name or "").strip() or parse_metadata(code).name or PLACEHOLDER_NAME
        with self._state_lock:
            record = ScriptRecord(
                id=str(uuid.uuid4()),
                name=display_name,
                code=code,
                enabled=True,
                order=self._next_order(),
            )
            self._records[record.id] = record
            result = record.copy()
        self._commit()
        logger.info(f"[ScriptStore] 已添加本地脚本: {display_name}")
        return result

    def add_remote(self, url: str) -> ScriptRecord:
        """
        从 URL 添加脚本

        Raises:
            DuplicateScript: 已存在同 URL 的脚本
            FetchError: 获取失败，此时不会创建任何记录
        """
        url = url.strip()
        with self._state_lock:
            if self._find_by_url(url) is not None:
                raise DuplicateScript(url)

        fetched = self.fetcher.fetch(url)

        with self._state_lock:
            # 获取期间可能有并发的同 URL 添加
            if self._find_by_url(url) is not None:
                raise DuplicateScript(url)
            record = ScriptRecord(
                id=str(uuid.uuid4()),
                name=fetched.name,
                code=fetched.code,
                enabled=True,
                order=self._next_order(),
                origin=self._origin_from(fetched),
            )
            self._records[record.id] = record
            result = record.copy()
        self._commit()
        logger.success(f"[ScriptStore] 已添加远程脚本: {record.name} ({url})")
        return result

    def toggle(self, script_id: str, enabled: bool):
        with self._lock_for(script_id):
            with self._state_lock:
                self._require(script_id).enabled = bool(enabled)
            self._commit()
        logger.info(f"[ScriptStore] {script_id} enabled={enabled}")

    def delete(self, script_id: str):
        with self._lock_for(script_id):
            with self._state_lock:
                record = self._require(script_id)
                del self._records[script_id]
            self._commit()
        with self._locks_guard:
            self._id_locks.pop(script_id, None)
        logger.info(f"[ScriptStore] 已删除脚本: {record.name}")

    def reorder(self, script_id: str, new_order: int):
        """
        设置单个记录的 order

        交换两条记录需要调用两次；其他记录的 order 不会被调整。
        """
        with self._lock_for(script_id):
            with self._state_lock:
                self._require(script_id).order = int(new_order)
            self._commit()

    def refresh(self, script_id: str) -> RefreshResult:
        """
        重新获取远程脚本

        成功时无条件替换内容（版本相同也替换），保留 id / enabled / order；
        失败时只写入 last_fetch_error，其余字段保持不变。

        Raises:
            NotFound: id 不存在
            NotRemoteScript: 本地脚本不能刷新
        """
        with self._lock_for(script_id):
            with self._state_lock:
                current = self._require(script_id)
                if current.origin is None:
                    raise NotRemoteScript(script_id)
                url = current.origin.url

            try:
                fetched = self.fetcher.fetch(url)
            except FetchError as e:
                failure = RefreshFailure(url, e.reason)
                with self._state_lock:
                    record = self._require(script_id)
                    record.origin.last_fetch_error = failure.reason
                    result = RefreshResult(record=record.copy(), error=failure)
                self._commit()
                logger.warning(f"[ScriptStore] 刷新失败 {record.name}: {failure.reason}")
                return result

            with self._state_lock:
                record = self._require(script_id)
                old_version = record.origin.version
                changed = record.code != fetched.code
                record.code = fetched.code
                record.name = fetched.name
                record.origin = self._origin_from(fetched)
                result = RefreshResult(record=record.copy(), changed=changed)
            self._commit()

        new_version = fetched.metadata.version
        if old_version != new_version:
            logger.success(f"[ScriptStore] {record.name}: {old_version or '?'} -> {new_version or '?'}")
        else:
            logger.info(f"[ScriptStore] 已刷新 {record.name} (changed={changed})")
        return result

    @staticmethod
    def _origin_from(fetched: FetchedScript) -> ScriptOrigin:
        metadata = fetched.metadata
        return ScriptOrigin(
            url=fetched.url,
            version=metadata.version,
            description=metadata.description,
            author=metadata.author,
            requires=list(metadata.requires),
            last_updated=fetched.fetched_at,
            last_fetch_error=None,
        )
