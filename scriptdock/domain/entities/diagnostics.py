"""
非致命诊断信息

通过诊断通道旁路上报，从不作为命令失败返回:
- ResolutionWarning: 依赖成环
- InjectionDegraded: 某个脚本在页面中执行失败，本轮注入被截断
- InjectionTimedOut: 等待页面握手超时
- ReloadFailed: 自动更新或启动时的重新加载失败
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Diagnostic:
    """诊断基类"""
    kind: str = field(init=False, default="Diagnostic")
    timestamp: float = field(default_factory=time.time, kw_only=True)

    def describe(self) -> str:
        return self.kind

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.describe(), "timestamp": self.timestamp}


@dataclass
class ResolutionWarning(Diagnostic):
    """依赖环中的脚本按 order 顺序调度，环内依赖约束被忽略"""
    script_ids: List[str] = field(default_factory=list)
    script_names: List[str] = field(default_factory=list)
    kind: str = field(init=False, default="ResolutionWarning")

    def describe(self) -> str:
        return f"Dependency cycle among: {', '.join(self.script_names)}"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["script_ids"] = list(self.script_ids)
        return data


@dataclass
class InjectionDegraded(Diagnostic):
    """注入被截断: failed 及其后的脚本都没有完成"""
    failed_id: Optional[str] = None
    failed_name: str = ""
    error: str = ""
    skipped_ids: List[str] = field(default_factory=list)
    kind: str = field(init=False, default="InjectionDegraded")

    def describe(self) -> str:
        return (f"Script '{self.failed_name}' failed in page ({self.error}); "
                f"{len(self.skipped_ids)} later script(s) not run")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["failed_id"] = self.failed_id
        data["skipped_ids"] = list(self.skipped_ids)
        return data


@dataclass
class InjectionTimedOut(Diagnostic):
    """握手在超时时间内没有完成"""
    phase: str = ""
    timeout: float = 0.0
    kind: str = field(init=False, default="InjectionTimedOut")

    def describe(self) -> str:
        return f"Injection handshake timed out after {self.timeout:.1f}s while {self.phase}"


@dataclass
class ReloadFailed(Diagnostic):
    """后台触发的重新加载失败（浏览器不可用等），脚本存储中的更新不受影响"""
    trigger: str = ""
    error: str = ""
    kind: str = field(init=False, default="ReloadFailed")

    def describe(self) -> str:
        return f"Reload after {self.trigger} failed: {self.error}"
