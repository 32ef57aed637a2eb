# Domain Entities

"""
领域实体 - 核心业务对象

不依赖任何外部框架。
"""

from .script_record import ScriptRecord, ScriptOrigin
from .script_metadata import ScriptMetadata
from .diagnostics import Diagnostic, ResolutionWarning, InjectionDegraded, InjectionTimedOut, ReloadFailed

__all__ = [
    'ScriptRecord',
    'ScriptOrigin',
    'ScriptMetadata',
    'Diagnostic',
    'ResolutionWarning',
    'InjectionDegraded',
    'InjectionTimedOut',
    'ReloadFailed',
]
