"""
浏览器管理器 - 基础设施层实现

封装 DrissionPage 的浏览器连接，实现注入管线需要的 IBrowserHost 接口。
引导脚本通过 DevTools 协议 Page.addScriptToEvaluateOnNewDocument 注册到隔离世界。
"""

import socket
from typing import Any, Optional

from DrissionPage import ChromiumOptions, ChromiumPage

from scriptdock.config import BrowserConfig
from scriptdock.exceptions import BrowserUnavailable
from scriptdock.utils.logger import get_logger

logger = get_logger(__name__)


def is_port_open(port: int, host: str = '127.0.0.1', timeout: float = 0.5) -> bool:
    """纯 Socket 检测端口是否开启"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.settimeout(timeout)
        return s.connect_ex((host, port)) == 0


class BrowserManager:
    """
    浏览器管理器

    职责:
    - 连接已开启调试端口的浏览器，或按配置启动一个独立配置目录的浏览器
    - 注册 / 替换引导脚本
    - 导航与执行 JavaScript
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        """
        初始化浏览器管理器

        Args:
            config: 浏览器配置（调试地址、是否自动启动、用户数据目录）
        """
        self.config = config or BrowserConfig()
        self.page: Optional[ChromiumPage] = None
        self._launched = False
        self._bootstrap_id: Optional[str] = None

    def connect(self) -> ChromiumPage:
        """
        连接浏览器

        Returns:
            ChromiumPage 对象

        Raises:
            BrowserUnavailable: 端口未开启且不允许自动启动，或启动失败
        """
        if self.page is not None:
            return self.page

        host, port = self.config.addr.split(':')
        try:
            if is_port_open(int(port), host):
                self.page = ChromiumPage(addr_or_opts=self.config.addr)
            elif self.config.launch:
                co = ChromiumOptions()
                co.set_local_port(int(port))
                co.set_user_data_path(self.config.user_data_path)
                self.page = ChromiumPage(addr_or_opts=co)
                self._launched = True
            else:
                raise BrowserUnavailable(f"无法连接到 {self.config.addr}。请确保浏览器已启用调试模式。")
        except BrowserUnavailable:
            raise
        except Exception as e:
            raise BrowserUnavailable(f"浏览器启动失败: {e}")

        logger.info(f"[BrowserManager] 已连接浏览器 {self.config.addr} (launched={self._launched})")
        return self.page

    def _drop_page(self):
        """浏览器已断开时丢弃页面句柄，下次 connect 重新连接"""
        self.page = None
        self._bootstrap_id = None
        self._launched = False

    def is_open(self) -> bool:
        """检查页面是否已连接且浏览器仍然存活"""
        if self.page is None:
            return False
        try:
            alive = bool(self.page.states.is_alive)
        except Exception as e:
            logger.debug(f"[BrowserManager] 连接状态检测失败: {e}")
            alive = False
        if not alive:
            logger.warning("[BrowserManager] 浏览器连接已断开")
            self._drop_page()
        return alive

    def navigate(self, url: str):
        """
        导航到指定地址

        Raises:
            BrowserUnavailable: 浏览器不可用或页面已断开
        """
        page = self.connect()
        try:
            page.get(url)
        except Exception as e:
            self._drop_page()
            raise BrowserUnavailable(f"页面导航失败: {e}") from e

    def install_bootstrap(self, script: str, world_name: str):
        """
        注册引导脚本，替换之前注册的版本

        Args:
            script: 引导脚本
            world_name: 隔离世界名称

        Raises:
            BrowserUnavailable: 浏览器不可用或页面已断开
        """
        page = self.connect()
        try:
            if self._bootstrap_id is not None:
                page.run_cdp('Page.removeScriptToEvaluateOnNewDocument', identifier=self._bootstrap_id)
                self._bootstrap_id = None

            result = page.run_cdp('Page.addScriptToEvaluateOnNewDocument', source=script, worldName=world_name)
        except Exception as e:
            self._drop_page()
            raise BrowserUnavailable(f"引导脚本注册失败: {e}") from e
        self._bootstrap_id = result.get('identifier')
        logger.debug(f"[BrowserManager] 引导脚本已注册: {self._bootstrap_id}")

    def run_js(self, script: str) -> Any:
        """
        在当前页面执行 JavaScript

        Args:
            script: JavaScript 代码（需自行 return 结果）

        Returns:
            执行结果，未连接时为 None
        """
        if self.page is None:
            return None
        return self.page.run_js(script)

    def close(self):
        """
        关闭目标页面

        由本进程启动的浏览器直接退出；外部浏览器只导航到空白页，保留用户会话。

        Raises:
            BrowserUnavailable: 关闭过程中浏览器报错（句柄仍会被丢弃）
        """
        if self.page is None:
            return
        page, launched, bootstrap_id = self.page, self._launched, self._bootstrap_id
        self._drop_page()
        try:
            if launched:
                page.quit()
            else:
                if bootstrap_id is not None:
                    page.run_cdp('Page.removeScriptToEvaluateOnNewDocument', identifier=bootstrap_id)
                page.get('about:blank')
        except Exception as e:
            raise BrowserUnavailable(f"关闭页面失败: {e}") from e
        logger.info("[BrowserManager] 目标页面已关闭")
