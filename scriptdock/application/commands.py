"""
命令分发

把展示层（或任何外部调用方）发来的 (command, payload) 映射到 ScriptManager 的方法。
请求体用 pydantic 模型校验，多余字段直接拒绝；结果统一包装为:

    {"ok": True, "result": ...}
    {"ok": False, "error": {"kind": ..., "message": ...}}
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from scriptdock.application.script_manager import MOVE_DOWN, MOVE_UP, ScriptManager
from scriptdock.core.injection_pipeline import InjectionReport
from scriptdock.exceptions import InvalidRequest, ScriptDockError, UnknownCommand
from scriptdock.utils.logger import get_logger

logger = get_logger(__name__)


class CommandName(str, Enum):
    GET_SCRIPTS = "get_scripts"
    ADD_SCRIPT_FROM_URL = "add_script_from_url"
    ADD_LOCAL_SCRIPT = "add_local_script"
    TOGGLE_SCRIPT = "toggle_script"
    DELETE_SCRIPT = "delete_script"
    REFRESH_SCRIPT = "refresh_script"
    REORDER_SCRIPT = "reorder_script"
    MOVE_SCRIPT = "move_script"
    RELOAD_SCRIPTS = "reload_scripts"
    AUTO_UPDATE_SCRIPTS = "auto_update_scripts"
    OPEN_TARGET_PAGE = "open_target_page"
    CLOSE_TARGET_PAGE = "close_target_page"
    GET_DATA_DIR = "get_data_dir"
    DRAIN_DIAGNOSTICS = "drain_diagnostics"


# ==================== 请求模型 ====================

class CommandRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")


class EmptyRequest(CommandRequest):
    pass


class ScriptIdRequest(CommandRequest):
    id: str = Field(min_length=1)


class AddFromUrlRequest(CommandRequest):
    url: str = Field(min_length=1)


class AddLocalRequest(CommandRequest):
    name: str = ""
    code: str


class ToggleRequest(ScriptIdRequest):
    enabled: bool


class ReorderRequest(ScriptIdRequest):
    new_order: int


class MoveRequest(ScriptIdRequest):
    direction: Literal["up", "down"]


class ReloadRequest(CommandRequest):
    timeout: Optional[float] = Field(default=None, gt=0)


# ==================== 响应模型 ====================

class ReloadResult(BaseModel):
    state: str
    completed: List[str]
    failed: Optional[str] = None
    skipped: List[str] = []
    error: Optional[str] = None
    elapsed: float

    @classmethod
    def from_report(cls, report: InjectionReport) -> 'ReloadResult':
        return cls(
            state=report.state.value,
            completed=[e.label for e in report.completed],
            failed=report.failed.label if report.failed is not None else None,
            skipped=[e.label for e in report.skipped],
            error=report.error,
            elapsed=round(report.elapsed, 3),
        )


class MoveResult(BaseModel):
    moved: bool


class AutoUpdateResult(BaseModel):
    changed: int


def _error(kind: str, message: str) -> Dict[str, Any]:
    return {"ok": False, "error": {"kind": kind, "message": message}}


class CommandDispatcher:
    """
    命令分发器

    ScriptDockError 的子类转为错误响应；其余异常视为程序错误继续向上抛出。
    """

    def __init__(self, manager: ScriptManager):
        self.manager = manager
        self._routes: Dict[CommandName, tuple] = {
            CommandName.GET_SCRIPTS: (EmptyRequest, self._get_scripts),
            CommandName.ADD_SCRIPT_FROM_URL: (AddFromUrlRequest, self._add_from_url),
            CommandName.ADD_LOCAL_SCRIPT: (AddLocalRequest, self._add_local),
            CommandName.TOGGLE_SCRIPT: (ToggleRequest, self._toggle),
            CommandName.DELETE_SCRIPT: (ScriptIdRequest, self._delete),
            CommandName.REFRESH_SCRIPT: (ScriptIdRequest, self._refresh),
            CommandName.REORDER_SCRIPT: (ReorderRequest, self._reorder),
            CommandName.MOVE_SCRIPT: (MoveRequest, self._move),
            CommandName.RELOAD_SCRIPTS: (ReloadRequest, self._reload),
            CommandName.AUTO_UPDATE_SCRIPTS: (EmptyRequest, self._auto_update),
            CommandName.OPEN_TARGET_PAGE: (EmptyRequest, self._open_page),
            CommandName.CLOSE_TARGET_PAGE: (EmptyRequest, self._close_page),
            CommandName.GET_DATA_DIR: (EmptyRequest, self._get_data_dir),
            CommandName.DRAIN_DIAGNOSTICS: (EmptyRequest, self._drain_diagnostics),
        }

    def dispatch(self, command: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        执行一条命令

        Args:
            command: 命令名，见 CommandName
            payload: 请求体，空命令可省略

        Returns:
            统一格式的响应字典
        """
        try:
            name = CommandName(command)
        except ValueError:
            error = UnknownCommand(f"Unknown command: {command}")
            logger.warning(f"[Commands] {error}")
            return _error(error.kind, str(error))

        request_model, handler = self._routes[name]
        try:
            request = request_model.model_validate(payload or {})
        except ValidationError as e:
            error = InvalidRequest(f"Invalid payload for {name.value}: {e.error_count()} error(s)")
            logger.warning(f"[Commands] {error}\n{e}")
            return _error(error.kind, str(error))

        logger.debug(f"[Commands] {name.value}")
        try:
            result = handler(request)
        except ScriptDockError as e:
            logger.warning(f"[Commands] {name.value} 失败: {e.kind}: {e}")
            return _error(e.kind, str(e))
        except Exception as e:
            logger.error(f"[Commands] {name.value} 内部错误: {type(e).__name__}: {e}")
            return _error("InternalError", f"{type(e).__name__}: {e}")
        return {"ok": True, "result": result}

    # ==================== 处理函数 ====================

    def _get_scripts(self, request: EmptyRequest) -> List[Dict[str, Any]]:
        return [record.to_dict() for record in self.manager.get_scripts()]

    def _add_from_url(self, request: AddFromUrlRequest) -> Dict[str, Any]:
        return self.manager.add_script_from_url(request.url).to_dict()

    def _add_local(self, request: AddLocalRequest) -> Dict[str, Any]:
        return self.manager.add_local_script(request.name, request.code).to_dict()

    def _toggle(self, request: ToggleRequest) -> None:
        self.manager.toggle_script(request.id, request.enabled)

    def _delete(self, request: ScriptIdRequest) -> None:
        self.manager.delete_script(request.id)

    def _refresh(self, request: ScriptIdRequest) -> Dict[str, Any]:
        return self.manager.refresh_script(request.id).to_dict()

    def _reorder(self, request: ReorderRequest) -> None:
        self.manager.reorder_script(request.id, request.new_order)

    def _move(self, request: MoveRequest) -> Dict[str, Any]:
        direction = MOVE_UP if request.direction == "up" else MOVE_DOWN
        return MoveResult(moved=self.manager.move_script(request.id, direction)).model_dump()

    def _reload(self, request: ReloadRequest) -> Dict[str, Any]:
        if request.timeout is None:
            report = self.manager.reload_scripts()
        else:
            report = self.manager.reload_scripts(timeout=request.timeout)
        return ReloadResult.from_report(report).model_dump()

    def _auto_update(self, request: EmptyRequest) -> Dict[str, Any]:
        return AutoUpdateResult(changed=self.manager.auto_update_scripts()).model_dump()

    def _open_page(self, request: EmptyRequest) -> None:
        self.manager.open_target_page()

    def _close_page(self, request: EmptyRequest) -> None:
        self.manager.close_target_page()

    def _get_data_dir(self, request: EmptyRequest) -> str:
        return self.manager.get_data_dir()

    def _drain_diagnostics(self, request: EmptyRequest) -> List[Dict[str, Any]]:
        return [d.to_dict() for d in self.manager.drain_diagnostics()]
