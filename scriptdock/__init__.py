"""
ScriptDock - 用户脚本管理与页面注入
"""

__version__ = "1.0.0"
