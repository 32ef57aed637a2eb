"""
脚本管理器

核心对外的命令接口，协调存储、解析、注入与自动更新。

原则:
- 不包含任何 UI 代码
- 存储是唯一可信的数据源，展示层只持有刷新得到的只读快照
- 修改命令之后由调用方发起 reload_scripts；reload 可重复调用
"""

import os
from typing import List, Optional

from scriptdock import config as app_config
from scriptdock.config import BrowserConfig, FetchConfig, InjectionConfig, StorageConfig, UpdateConfig
from scriptdock.core.auto_updater import AutoUpdateCoordinator
from scriptdock.core.diagnostics_channel import DiagnosticsChannel
from scriptdock.core.injection_pipeline import InjectionPipeline, InjectionReport, build_entries, DEFAULT_TIMEOUT
from scriptdock.core.resolver import resolve
from scriptdock.core.script_store import ScriptStore
from scriptdock.domain.entities import Diagnostic, ReloadFailed, ScriptRecord
from scriptdock.exceptions import NotFound, ScriptDockError
from scriptdock.infrastructure.http.remote_fetcher import RemoteFetcher
from scriptdock.infrastructure.persistence import DependencyCache, JsonRecordStore
from scriptdock.utils.logger import get_logger

logger = get_logger(__name__)

MOVE_UP = "up"
MOVE_DOWN = "down"


class ScriptManager:
    """
    脚本管理器

    职责:
    - 脚本增删改查与刷新
    - 解析顺序并驱动注入管线
    - 启动时自动更新
    - 汇总非致命诊断
    """

    def __init__(
        self,
        store: ScriptStore,
        pipeline: InjectionPipeline,
        dependency_cache: Optional[DependencyCache] = None,
        diagnostics: Optional[DiagnosticsChannel] = None,
        data_dir: Optional[str] = None,
        update_min_age: float = 0.0
    ):
        """
        初始化脚本管理器

        Args:
            store: 脚本存储
            pipeline: 注入管线
            dependency_cache: 依赖库缓存
            diagnostics: 诊断通道
            data_dir: 数据目录（仅供展示）
            update_min_age: 自动更新的新鲜度窗口(秒)
        """
        self.store = store
        self.pipeline = pipeline
        self.dependency_cache = dependency_cache
        self.diagnostics = diagnostics or DiagnosticsChannel()
        self.data_dir = data_dir or os.path.dirname(store.location)
        self.auto_updater = AutoUpdateCoordinator(
            store, self.reload_scripts, min_age=update_min_age, diagnostics=self.diagnostics
        )

    @classmethod
    def create(
        cls,
        storage: Optional[StorageConfig] = None,
        fetch: Optional[FetchConfig] = None,
        injection: Optional[InjectionConfig] = None,
        browser: Optional[BrowserConfig] = None,
        update: Optional[UpdateConfig] = None,
        host=None
    ) -> 'ScriptManager':
        """
        按配置组装完整的管理器

        未传入的配置使用 scriptdock.config 中的全局实例；
        host 为空时使用 DrissionPage 浏览器管理器。
        """
        storage = storage or app_config.storage_config
        fetch = fetch or app_config.fetch_config
        injection = injection or app_config.injection_config
        update = update or app_config.update_config

        if host is None:
            from scriptdock.infrastructure.browser.browser_manager import BrowserManager
            host = BrowserManager(browser or app_config.browser_config)

        dependency_cache = DependencyCache(storage.data_dir, storage.dependencies_file)
        fetcher = RemoteFetcher(fetch, dependency_cache=dependency_cache)
        store = ScriptStore(JsonRecordStore(storage.data_dir, storage.scripts_file), fetcher)
        pipeline = InjectionPipeline(host, injection)

        return cls(
            store=store,
            pipeline=pipeline,
            dependency_cache=dependency_cache,
            data_dir=storage.data_dir,
            update_min_age=update.min_age,
        )

    # ==================== 查询 ====================

    def get_scripts(self) -> List[ScriptRecord]:
        return self.store.list()

    def get_data_dir(self) -> str:
        return self.data_dir

    def drain_diagnostics(self) -> List[Diagnostic]:
        return self.diagnostics.drain()

    # ==================== 修改 ====================

    def add_script_from_url(self, url: str) -> ScriptRecord:
        return self.store.add_remote(url)

    def add_local_script(self, name: str, code: str) -> ScriptRecord:
        return self.store.add_local(name, code)

    def toggle_script(self, script_id: str, enabled: bool):
        self.store.toggle(script_id, enabled)

    def delete_script(self, script_id: str):
        self.store.delete(script_id)

    def refresh_script(self, script_id: str) -> ScriptRecord:
        """获取失败不会让调用失败，错误写在返回记录的 last_fetch_error 中"""
        return self.store.refresh(script_id).record

    def reorder_script(self, script_id: str, new_order: int):
        self.store.reorder(script_id, new_order)

    def move_script(self, script_id: str, direction: str) -> bool:
        """
        与相邻脚本交换位置

        两个 order 值都在任何写入之前取出，交换两次即可还原。

        Args:
            script_id: 脚本 id
            direction: "up" 或 "down"

        Returns:
            是否发生了移动（已在首位 / 末位时为 False）
        """
        if direction not in (MOVE_UP, MOVE_DOWN):
            raise ValueError(f"direction must be '{MOVE_UP}' or '{MOVE_DOWN}'")

        records = self.store.list()
        index = next((i for i, r in enumerate(records) if r.id == script_id), None)
        if index is None:
            raise NotFound(script_id)

        neighbor_index = index - 1 if direction == MOVE_UP else index + 1
        if not 0 <= neighbor_index < len(records):
            return False

        current, neighbor = records[index], records[neighbor_index]
        new_current, new_neighbor = neighbor.order, current.order

        if new_current == new_neighbor:
            # 相同 order 时交换无效，把后一个拉开一个单位
            if direction == MOVE_UP:
                new_neighbor = new_current + 1
            else:
                new_current = new_neighbor + 1

        self.store.reorder(current.id, new_current)
        self.store.reorder(neighbor.id, new_neighbor)
        return True

    # ==================== 注入 ====================

    def reload_scripts(self, timeout=DEFAULT_TIMEOUT) -> InjectionReport:
        """
        解析当前状态并重新注入

        依赖环与注入截断作为诊断发布，不会让调用失败。
        """
        records = self.store.list()
        resolution = resolve(records)
        for warning in resolution.warnings:
            self.diagnostics.publish(warning)

        entries = build_entries(resolution.sequence, self.dependency_cache)
        report = self.pipeline.inject(entries, timeout=timeout)

        diagnostic = report.to_diagnostic()
        if diagnostic is not None:
            self.diagnostics.publish(diagnostic)
        return report

    def auto_update_scripts(self) -> int:
        return self.auto_updater.run_once()

    def open_target_page(self):
        """打开目标页面；已经打开时不做任何事"""
        if self.pipeline.is_active:
            return
        self.reload_scripts()

    def close_target_page(self):
        try:
            self.pipeline.host.close()
        finally:
            self.pipeline.last_report = None

    def start(self) -> int:
        """
        进程启动流程: 先自动更新一次，再进行首次加载

        浏览器不可用不会让启动失败: 错误以 ReloadFailed 诊断发布，之后可再次 open_target_page。

        Returns:
            自动更新中内容有变化的脚本数量
        """
        changed = self.auto_update_scripts()
        if not changed:
            # 有变化时自动更新已经触发过重新加载
            try:
                self.open_target_page()
            except ScriptDockError as e:
                logger.error(f"[ScriptManager] 首次加载失败: {e}")
                self.diagnostics.publish(ReloadFailed(trigger="startup", error=str(e)))
        return changed
