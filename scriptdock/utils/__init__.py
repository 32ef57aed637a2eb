"""
Utils 模块初始化文件
"""

from .logger import ScriptDockLogger, get_logger, setup_logging

__all__ = [
    'ScriptDockLogger',
    'get_logger',
    'setup_logging',
]
