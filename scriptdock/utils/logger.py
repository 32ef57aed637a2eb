"""
ScriptDock 日志系统

在标准 logging 之上提供:
- success 级别（25，介于 INFO 和 WARNING 之间）
- UI 回调，把日志同步转发给展示层
- 控制台 / 文件输出的一次性初始化

用法:
    from scriptdock.utils.logger import get_logger, setup_logging

    setup_logging()
    logger = get_logger(__name__)
    logger.info("[ScriptStore] 已加载 3 个脚本")
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Literal, Optional


LogLevel = Literal["debug", "info", "success", "warning", "error"]
UICallback = Callable[[str, str], None]

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
TIME_FORMAT = "%H:%M:%S"

SUCCESS_LEVEL = 25
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")

# 第三方库日志降级
_NOISY_LOGGERS = ("urllib3", "requests", "DrissionPage", "websocket")


class ScriptDockLogger:
    """
    ScriptDock 日志封装

    每条日志写入 logging，同时（如已设置）调用 UI 回调 (message, level)。
    UI 回调抛出的异常会被记录为 debug 日志，不会中断调用方。
    """

    def __init__(self, name: str, ui_callback: Optional[UICallback] = None):
        self.logger = logging.getLogger(name)
        self.ui_callback = ui_callback

    def _emit(self, level: int, level_name: str, message: str):
        self.logger.log(level, message)
        if self.ui_callback is None:
            return
        try:
            self.ui_callback(message, level_name)
        except Exception as e:
            self.logger.debug(f"UI callback failed: {e}")

    def debug(self, message: str):
        self._emit(logging.DEBUG, "debug", message)

    def info(self, message: str):
        self._emit(logging.INFO, "info", message)

    def success(self, message: str):
        """成功级别日志（带 ✅ 前缀）"""
        self._emit(SUCCESS_LEVEL, "success", f"✅ {message}")

    def warning(self, message: str):
        self._emit(logging.WARNING, "warning", message)

    def error(self, message: str):
        self._emit(logging.ERROR, "error", message)

    def set_ui_callback(self, callback: Optional[UICallback]):
        """设置或清除 UI 回调"""
        self.ui_callback = callback


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    format_string: str = DEFAULT_FORMAT,
    stream=None
):
    """
    初始化日志系统

    Args:
        level: 日志级别
        log_file: 日志文件路径（可选），父目录不存在时自动创建
        format_string: 日志格式
        stream: 控制台输出流，默认 stdout
    """
    handlers = [logging.StreamHandler(stream or sys.stdout)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=level,
        format=format_string,
        datefmt=TIME_FORMAT,
        handlers=handlers,
        force=True
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, ui_callback: Optional[UICallback] = None) -> ScriptDockLogger:
    """
    获取 ScriptDock 日志器

    Args:
        name: 日志器名称（通常为 __name__）
        ui_callback: UI 回调函数，签名 (message, level) -> None
    """
    return ScriptDockLogger(name, ui_callback)
