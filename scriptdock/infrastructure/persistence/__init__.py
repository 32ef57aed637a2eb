"""
持久化基础设施模块

提供脚本记录与依赖缓存的 JSON 文件存储。
"""
from .record_store import JsonRecordStore
from .dependency_cache import DependencyCache, CachedDependency

__all__ = ['JsonRecordStore', 'DependencyCache', 'CachedDependency']
