"""
浏览器宿主接口

定义注入管线对嵌入式浏览器的最小需求。
"""

from typing import Any, Protocol


class IBrowserHost(Protocol):
    """
    浏览器宿主接口

    职责:
    - 导航到指定 URL
    - 注册在文档创建前运行的隔离引导脚本
    - 在页面真实上下文中执行 JavaScript 并返回结果
    """

    def navigate(self, url: str) -> None:
        """导航（或重新加载）到 url"""
        ...

    def install_bootstrap(self, script: str, world_name: str) -> None:
        """注册文档开始时运行的引导脚本，替换之前注册的引导脚本"""
        ...

    def run_js(self, script: str) -> Any:
        """在页面上下文执行脚本，脚本需自行 return 结果"""
        ...

    def is_open(self) -> bool:
        ...

    def close(self) -> None:
        ...
