"""
应用层

对外只暴露 ScriptManager 与命令分发器。
"""

from .script_manager import ScriptManager
from .commands import CommandDispatcher, CommandName

__all__ = ['ScriptManager', 'CommandDispatcher', 'CommandName']
