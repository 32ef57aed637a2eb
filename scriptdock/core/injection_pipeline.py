"""
注入管线

把解析器给出的序列送进页面的真实执行上下文。

两阶段握手:
    AWAITING_ANCHOR  隔离世界引导脚本等待 document.documentElement
    INJECTING        逐个挂载 <script> 节点（挂载即同步执行）
然后结束于 DONE / DEGRADED，或在调用方给定的超时后进入 TIMED_OUT。

Python 侧以单个阻塞调用暴露握手，内部指数退避轮询页面上的状态属性。
每次重新加载都完整重跑整个序列，不与上一次注入做差异比较。
"""

import json
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from scriptdock.config import InjectionConfig
from scriptdock.core.resolver import ResolvedScript
from scriptdock.domain.entities import Diagnostic, InjectionDegraded, InjectionTimedOut
from scriptdock.domain.interfaces import IBrowserHost
from scriptdock.exceptions import BrowserUnavailable
from scriptdock.infrastructure.js.injection_scripts import InjectionEntry, InjectionScripts
from scriptdock.infrastructure.persistence.dependency_cache import DependencyCache
from scriptdock.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = object()


class HandshakeState(str, Enum):
    IDLE = "idle"
    AWAITING_ANCHOR = "awaiting_anchor"
    INJECTING = "injecting"
    DONE = "done"
    DEGRADED = "degraded"
    TIMED_OUT = "timed_out"


@dataclass
class InjectionReport:
    """一轮注入的结果"""
    token: str
    state: HandshakeState
    entries: List[InjectionEntry] = field(default_factory=list)
    completed: List[InjectionEntry] = field(default_factory=list)
    failed: Optional[InjectionEntry] = None
    failed_index: Optional[int] = None
    error: Optional[str] = None
    elapsed: float = 0.0
    timeout: Optional[float] = None
    anchored: bool = False

    @property
    def skipped(self) -> List[InjectionEntry]:
        """失败脚本之后没有执行的条目"""
        if self.failed_index is None:
            return []
        return self.entries[self.failed_index + 1:]

    def to_diagnostic(self) -> Optional[Diagnostic]:
        if self.state is HandshakeState.DEGRADED and self.failed is not None:
            return InjectionDegraded(
                failed_id=self.failed.script_id or None,
                failed_name=self.failed.label,
                error=self.error or "",
                skipped_ids=[e.script_id for e in self.skipped if e.script_id],
            )
        if self.state is HandshakeState.TIMED_OUT:
            phase = "injecting" if self.anchored else "awaiting anchor"
            return InjectionTimedOut(phase=phase, timeout=self.timeout or 0.0)
        return None


def build_entries(
    sequence: Iterable[ResolvedScript],
    dependency_cache: Optional[DependencyCache] = None
) -> List[InjectionEntry]:
    """
    组装注入条目

    所有启用脚本用到的依赖库（去重，按首次出现顺序）排在脚本之前；
    缓存中缺失的依赖库跳过并记录警告。
    """
    sequence = list(sequence)
    entries: List[InjectionEntry] = []

    if dependency_cache is not None:
        seen = set()
        for script in sequence:
            for url in script.requires:
                if not url.startswith(("https://", "http://")) or url in seen:
                    continue
                seen.add(url)
                dependency = dependency_cache.get(url)
                if dependency is None:
                    logger.warning(f"[InjectionPipeline] 依赖库缺失，跳过: {url}")
                    continue
                entries.append(InjectionEntry(label=f"dependency:{url}", code=dependency.code))

    for script in sequence:
        entries.append(InjectionEntry(label=script.name, code=script.code, script_id=script.id))
    return entries


class InjectionPipeline:
    """
    注入管线

    页面句柄只归本类所有；多次重载串行执行。
    """

    def __init__(
        self,
        host: IBrowserHost,
        config: Optional[InjectionConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        token_factory: Callable[[], str] = lambda: uuid.uuid4().hex
    ):
        """
        初始化注入管线

        Args:
            host: 浏览器宿主
            config: 注入配置
            sleep / clock / token_factory: 可替换的时间与标识来源（测试用）
        """
        self.host = host
        self.config = config or InjectionConfig()
        self._sleep = sleep
        self._clock = clock
        self._token_factory = token_factory
        self._lock = threading.Lock()
        self._state = HandshakeState.IDLE
        self.last_report: Optional[InjectionReport] = None

    @property
    def state(self) -> HandshakeState:
        return self._state

    @property
    def is_active(self) -> bool:
        """已经完成过至少一轮注入且页面仍然打开"""
        return self.last_report is not None and self.host.is_open()

    def inject(self, entries: List[InjectionEntry], timeout: Any = DEFAULT_TIMEOUT) -> InjectionReport:
        """
        注册引导脚本并重新加载目标页面，阻塞直到握手结束

        Args:
            entries: 按顺序排列的注入条目
            timeout: 握手超时(秒)；None 表示无限等待；缺省使用配置值

        Returns:
            InjectionReport

        Raises:
            BrowserUnavailable: 注册引导脚本或导航时浏览器不可用（页面已被关闭等）
        """
        if timeout is DEFAULT_TIMEOUT:
            timeout = self.config.anchor_timeout

        with self._lock:
            token = self._token_factory()
            bootstrap = InjectionScripts.build_bootstrap(entries, token)
            try:
                self.host.install_bootstrap(bootstrap, self.config.world_name)

                self._state = HandshakeState.AWAITING_ANCHOR
                logger.info(f"[InjectionPipeline] 重新加载 {self.config.target_url}，待注入 {len(entries)} 段脚本")
                self.host.navigate(self.config.target_url)

                report = self._await_handshake(token, entries, timeout)
                self._state = report.state
                self.last_report = report
            except BrowserUnavailable:
                self.last_report = None
                raise
            except Exception as e:
                self.last_report = None
                raise BrowserUnavailable(f"浏览器操作失败: {e}") from e
            finally:
                if self._state in (HandshakeState.AWAITING_ANCHOR, HandshakeState.INJECTING):
                    self._state = HandshakeState.IDLE

        if report.state is HandshakeState.DONE:
            logger.success(f"[InjectionPipeline] 已注入 {len(report.completed)} 段脚本 ({report.elapsed:.2f}s)")
        else:
            diagnostic = report.to_diagnostic()
            if diagnostic is not None:
                logger.warning(f"[InjectionPipeline] {diagnostic.describe()}")
        return report

    def _probe(self, token: str) -> Optional[Dict[str, Any]]:
        """读取页面上的握手状态；页面仍在跳转等情况返回 None"""
        try:
            raw = self.host.run_js(InjectionScripts.STATUS_PROBE)
        except Exception as e:
            logger.debug(f"[InjectionPipeline] 状态探测失败: {e}")
            return None
        if not raw:
            return None
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                return None
        if not isinstance(raw, dict) or raw.get("token") != token:
            return None
        return raw

    def _await_handshake(self, token: str, entries: List[InjectionEntry],
                         timeout: Optional[float]) -> InjectionReport:
        start = self._clock()
        delay = self.config.poll_interval
        last_status: Optional[Dict[str, Any]] = None

        while True:
            status = self._probe(token)
            if status is not None:
                last_status = status
                if self._state is HandshakeState.AWAITING_ANCHOR:
                    self._state = HandshakeState.INJECTING
                    logger.debug("[InjectionPipeline] 内容锚点已就绪，开始注入")
                if status.get("phase") in (HandshakeState.DONE.value, HandshakeState.DEGRADED.value):
                    return self._build_report(token, entries, status, self._clock() - start, timeout)

            elapsed = self._clock() - start
            if timeout is not None and elapsed >= timeout:
                report = self._build_report(token, entries, last_status or {}, elapsed, timeout)
                report.state = HandshakeState.TIMED_OUT
                return report

            self._sleep(delay)
            delay = min(delay * 2, self.config.max_poll_interval)

    @staticmethod
    def _build_report(token: str, entries: List[InjectionEntry], status: Dict[str, Any],
                      elapsed: float, timeout: Optional[float]) -> InjectionReport:
        completed = [entries[i] for i in status.get("completed", []) if 0 <= i < len(entries)]
        failed_index = status.get("failed")
        if not (isinstance(failed_index, int) and 0 <= failed_index < len(entries)):
            failed_index = None
        phase = status.get("phase")
        state = HandshakeState.DEGRADED if phase == HandshakeState.DEGRADED.value else HandshakeState.DONE
        return InjectionReport(
            token=token,
            state=state,
            entries=list(entries),
            completed=completed,
            failed=entries[failed_index] if failed_index is not None else None,
            failed_index=failed_index,
            error=status.get("error"),
            elapsed=elapsed,
            timeout=timeout,
            anchored=bool(status),
        )
