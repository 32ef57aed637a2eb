# JavaScript Infrastructure

"""
注入用 JavaScript - 集中管理所有在浏览器中执行的脚本

包括隔离世界中的引导脚本、页面上下文前置脚本和握手状态探针。
"""

from .injection_scripts import InjectionScripts, InjectionEntry

__all__ = ['InjectionScripts', 'InjectionEntry']
