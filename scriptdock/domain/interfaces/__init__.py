# Domain Interfaces

"""
领域接口 - 抽象契约定义

使用 Python Protocol (Structural Subtyping) 定义接口，
核心逻辑只依赖这些契约，不依赖 DrissionPage 或具体存储实现。
"""

from .browser import IBrowserHost
from .record_store import IRecordStore

__all__ = [
    'IBrowserHost',
    'IRecordStore',
]
