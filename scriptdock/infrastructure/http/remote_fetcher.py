"""
远程获取器 - 基础设施层实现

使用 requests 下载脚本文本，解析头部元数据，并把 @require 库交给依赖缓存。
所有失败都转换为带可读信息的 FetchError。
"""

import posixpath
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlparse, unquote

import requests

from scriptdock.config import FetchConfig
from scriptdock.core.metadata_parser import parse_metadata
from scriptdock.domain.entities import ScriptMetadata
from scriptdock.exceptions import FetchError
from scriptdock.infrastructure.persistence.dependency_cache import DependencyCache
from scriptdock.utils.logger import get_logger

logger = get_logger(__name__)

ACCEPTED_CONTENT_TYPES = ("javascript", "text/plain")
PLACEHOLDER_NAME = "Unnamed Script"


@dataclass
class FetchedScript:
    """一次成功获取的结果"""
    url: str
    code: str
    metadata: ScriptMetadata
    fetched_at: int

    @property
    def name(self) -> str:
        return self.metadata.name or derive_name(self.url)


def derive_name(url: str) -> str:
    """
    从 URL 推导占位名称

    https://x/y.user.js -> "y"；无法推导时返回 "Unnamed Script"
    """
    path = unquote(urlparse(url).path or "")
    filename = posixpath.basename(path.rstrip("/"))
    for suffix in (".user.js", ".js"):
        if filename.endswith(suffix):
            filename = filename[:-len(suffix)]
            break
    return filename or PLACEHOLDER_NAME


class RemoteFetcher:
    """
    远程脚本获取器

    职责:
    - 带超时的 HTTP 下载与响应校验
    - 解析元数据
    - 下载尚未缓存的 @require 依赖库
    """

    def __init__(
        self,
        config: Optional[FetchConfig] = None,
        session: Optional[requests.Session] = None,
        dependency_cache: Optional[DependencyCache] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        初始化获取器

        Args:
            config: 获取配置
            session: requests 会话（测试时可替换）
            dependency_cache: 依赖缓存，None 表示不处理 @require 库
            clock: 时间来源
        """
        self.config = config or FetchConfig()
        self.session = session or requests.Session()
        self.dependency_cache = dependency_cache
        self._clock = clock

    def fetch_text(self, url: str) -> str:
        """
        下载文本并校验

        Raises:
            FetchError: URL 不合法、网络错误、超时、非 2xx、内容类型不符、空内容或超出大小
        """
        if self.config.https_only and not url.startswith("https://"):
            raise FetchError(url, "Only HTTPS URLs are supported")
        if not url.startswith(("https://", "http://")):
            raise FetchError(url, f"Unsupported URL: {url}")

        try:
            response = self.session.get(
                url,
                timeout=self.config.timeout,
                headers={"User-Agent": self.config.user_agent},
            )
        except requests.exceptions.Timeout:
            raise FetchError(url, f"Request timed out after {self.config.timeout:g} seconds")
        except requests.exceptions.ConnectionError:
            raise FetchError(url, f"Failed to connect to {url}")
        except requests.exceptions.RequestException as e:
            raise FetchError(url, f"Network error: {e}")

        if not 200 <= response.status_code < 300:
            reason = response.reason or "Unknown error"
            raise FetchError(url, f"HTTP {response.status_code}: {reason}")

        content_type = response.headers.get("Content-Type", "")
        if content_type and not any(t in content_type for t in ACCEPTED_CONTENT_TYPES):
            raise FetchError(url, f"Expected JavaScript, got content-type: {content_type}")

        if len(response.content) > self.config.max_bytes:
            raise FetchError(url, f"Script too large (>{self.config.max_bytes} bytes)")

        text = response.text
        if not text or not text.strip():
            raise FetchError(url, "Empty response body")
        return text

    def fetch(self, url: str) -> FetchedScript:
        """
        获取脚本及其依赖库

        Args:
            url: 脚本地址

        Returns:
            FetchedScript

        Raises:
            FetchError: 脚本或任一依赖库获取失败
        """
        logger.info(f"[RemoteFetcher] 获取脚本: {url}")
        code = self.fetch_text(url)
        metadata = parse_metadata(code)

        if self.dependency_cache is not None and metadata.library_urls:
            try:
                self.dependency_cache.ensure(metadata.library_urls, self.fetch_text)
            except FetchError as e:
                raise FetchError(url, f"Failed to fetch dependency {e.url}: {e.reason}")

        return FetchedScript(url=url, code=code, metadata=metadata, fetched_at=int(self._clock()))
