"""
ScriptDock 异常层级

所有模块只抛出 ScriptDockError 的子类。
NotFound / FetchError / DuplicateScript / NotRemoteScript 会传递给调用方；
RefreshFailure 只在刷新路径内部使用，最终被吸收到记录的 last_fetch_error 中。
"""

__all__ = [
    "ScriptDockError",
    "NotFound",
    "FetchError",
    "RefreshFailure",
    "DuplicateScript",
    "NotRemoteScript",
    "BrowserUnavailable",
    "CommandError",
    "UnknownCommand",
    "InvalidRequest",
]


class ScriptDockError(Exception):
    """所有 ScriptDock 错误的根类型"""

    kind = "ScriptDockError"


# ── 脚本存储 ──────────────────────────────────────────────────────────────

class NotFound(ScriptDockError):
    """操作引用了不存在的脚本 id"""

    kind = "NotFound"

    def __init__(self, script_id: str):
        super().__init__(f"Script not found: {script_id}")
        self.script_id = script_id


class DuplicateScript(ScriptDockError):
    """同一 URL 的脚本已存在"""

    kind = "DuplicateScript"

    def __init__(self, url: str):
        super().__init__(f"A script from this URL already exists: {url}")
        self.url = url


class NotRemoteScript(ScriptDockError):
    """对本地脚本执行了只适用于远程脚本的操作（刷新）"""

    kind = "NotRemoteScript"

    def __init__(self, script_id: str):
        super().__init__(f"Cannot refresh a locally added script: {script_id}")
        self.script_id = script_id


# ── 远程获取 ──────────────────────────────────────────────────────────────

class FetchError(ScriptDockError):
    """网络 / 超时 / 状态码 / 内容无效导致的获取失败"""

    kind = "FetchError"

    def __init__(self, url: str, reason: str):
        super().__init__(reason)
        self.url = url
        self.reason = reason


class RefreshFailure(FetchError):
    """刷新时的获取失败，记录到脚本上而不向外传递"""

    kind = "RefreshFailure"


# ── 浏览器 ────────────────────────────────────────────────────────────────

class BrowserUnavailable(ScriptDockError):
    """无法连接或启动目标浏览器"""

    kind = "BrowserUnavailable"


# ── 命令接口 ──────────────────────────────────────────────────────────────

class CommandError(ScriptDockError):
    """命令分发层错误的基类"""

    kind = "CommandError"


class UnknownCommand(CommandError):
    kind = "UnknownCommand"


class InvalidRequest(CommandError):
    kind = "InvalidRequest"
