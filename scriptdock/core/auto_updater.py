"""
自动更新协调器

启动时对所有远程脚本执行一次刷新；内容有变化的数量非零时触发一次重新加载。
每个进程只运行一次，不重试；失败只体现在各记录的 last_fetch_error 上。
"""

import threading
import time
from typing import Callable, Optional

from scriptdock.core.script_store import ScriptStore
from scriptdock.core.diagnostics_channel import DiagnosticsChannel
from scriptdock.domain.entities import ReloadFailed
from scriptdock.exceptions import NotFound, ScriptDockError
from scriptdock.utils.logger import get_logger

logger = get_logger(__name__)


class AutoUpdateCoordinator:
    """
    自动更新协调器

    Args:
        store: 脚本存储
        reload: 重新加载回调
        min_age: 距上次成功获取不足该秒数的脚本跳过（0 表示全部刷新）
        clock: 时间来源
        diagnostics: 重新加载失败时发布诊断的通道
    """

    def __init__(
        self,
        store: ScriptStore,
        reload: Callable[[], object],
        min_age: float = 0.0,
        clock: Callable[[], float] = time.time,
        diagnostics: Optional[DiagnosticsChannel] = None
    ):
        self.store = store
        self.reload = reload
        self.min_age = min_age
        self._clock = clock
        self.diagnostics = diagnostics
        self._lock = threading.Lock()
        self._has_run = False
        self.last_changed: Optional[int] = None

    @property
    def has_run(self) -> bool:
        return self._has_run

    def _is_fresh(self, last_updated: Optional[int]) -> bool:
        if self.min_age <= 0 or last_updated is None:
            return False
        return self._clock() - last_updated < self.min_age

    def run_once(self) -> int:
        """
        刷新全部远程脚本

        Returns:
            内容发生变化的脚本数量；已经运行过时返回 0
            （随后的重新加载失败时仍返回该数量，失败以 ReloadFailed 诊断发布）
        """
        with self._lock:
            if self._has_run:
                logger.debug("[AutoUpdate] 本进程已运行过自动更新，跳过")
                return 0
            self._has_run = True

        changed = 0
        failed = 0
        for record in self.store.list():
            if record.origin is None or self._is_fresh(record.origin.last_updated):
                continue
            try:
                result = self.store.refresh(record.id)
            except NotFound:
                # 自动更新期间被删除
                continue
            if not result.succeeded:
                failed += 1
            elif result.changed:
                changed += 1

        self.last_changed = changed
        logger.info(f"[AutoUpdate] 更新完成: {changed} 个有变化, {failed} 个失败")

        if changed:
            try:
                self.reload()
            except ScriptDockError as e:
                # 刷新结果已经落盘，重新加载失败不影响返回值
                logger.error(f"[AutoUpdate] 更新后重新加载失败: {e}")
                if self.diagnostics is not None:
                    self.diagnostics.publish(ReloadFailed(trigger="auto-update", error=str(e)))
        return changed
