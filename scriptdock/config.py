"""
ScriptDock 配置中心

集中管理所有可配置参数，避免硬编码散落在各模块中。
支持从环境变量读取配置（前缀 SCRIPTDOCK_）。

用法:
    from scriptdock.config import fetch_config, injection_config

    timeout = fetch_config.timeout
    target = injection_config.target_url
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


APP_NAME = "ScriptDock"


def _default_data_dir() -> str:
    """按平台约定返回数据目录"""
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
    elif sys.platform == "darwin":
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return os.path.join(base, APP_NAME)


@dataclass
class FetchConfig:
    """
    远程获取配置

    控制脚本下载的超时与校验规则。
    """
    timeout: float = 30.0               # 单次请求超时(秒)
    max_bytes: int = 10 * 1024 * 1024   # 脚本大小上限
    user_agent: str = "ScriptDock/1.0"
    https_only: bool = True             # 只接受 https:// 地址


@dataclass
class InjectionConfig:
    """
    注入配置

    控制目标页面与握手轮询参数。
    """
    target_url: str = "https://www.geoguessr.com/"
    anchor_timeout: Optional[float] = 30.0  # 握手超时(秒)，None 表示无限等待
    poll_interval: float = 0.05             # 初始轮询间隔(秒)
    max_poll_interval: float = 1.0          # 退避上限(秒)
    world_name: str = "scriptdock_bootstrap"


@dataclass
class BrowserConfig:
    """浏览器连接配置"""
    addr: str = "127.0.0.1:9222"
    launch: bool = True                 # 端口未开启时自动启动浏览器
    user_data_path: str = field(default_factory=lambda: os.path.join(_default_data_dir(), "browser_profile"))


@dataclass
class StorageConfig:
    """持久化配置"""
    data_dir: str = field(default_factory=_default_data_dir)
    scripts_file: str = "scripts.json"
    dependencies_file: str = "dependencies.json"


@dataclass
class UpdateConfig:
    """自动更新配置"""
    min_age: float = 0.0   # 距上次成功获取不足该秒数的脚本跳过，0 表示总是刷新


def _get_env_float(key: str, default: float) -> float:
    """从环境变量获取浮点数配置"""
    value = os.environ.get(key)
    if value:
        try:
            return float(value)
        except ValueError:
            pass
    return default


def _get_env_int(key: str, default: int) -> int:
    """从环境变量获取整数配置"""
    value = os.environ.get(key)
    if value:
        try:
            return int(value)
        except ValueError:
            pass
    return default


def _get_env_str(key: str, default: str) -> str:
    value = os.environ.get(key)
    return value if value else default


def _get_env_bool(key: str, default: bool) -> bool:
    """从环境变量获取布尔配置，无法识别的值返回默认值"""
    value = os.environ.get(key)
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    return default


def _anchor_timeout_from_env() -> Optional[float]:
    # <= 0 表示无限等待
    timeout = _get_env_float('SCRIPTDOCK_ANCHOR_TIMEOUT', 30.0)
    return timeout if timeout > 0 else None


# ============================================================
# 全局配置实例
# ============================================================

def _build_fetch_config() -> FetchConfig:
    return FetchConfig(
        timeout=_get_env_float('SCRIPTDOCK_FETCH_TIMEOUT', 30.0),
        max_bytes=_get_env_int('SCRIPTDOCK_FETCH_MAX_BYTES', 10 * 1024 * 1024),
        https_only=_get_env_bool('SCRIPTDOCK_HTTPS_ONLY', True),
    )


def _build_injection_config() -> InjectionConfig:
    return InjectionConfig(
        target_url=_get_env_str('SCRIPTDOCK_TARGET_URL', "https://www.geoguessr.com/"),
        anchor_timeout=_anchor_timeout_from_env(),
        poll_interval=_get_env_float('SCRIPTDOCK_POLL_INTERVAL', 0.05),
    )


def _build_browser_config() -> BrowserConfig:
    return BrowserConfig(
        addr=_get_env_str('SCRIPTDOCK_BROWSER_ADDR', "127.0.0.1:9222"),
        launch=_get_env_bool('SCRIPTDOCK_BROWSER_LAUNCH', True),
    )


def _build_storage_config() -> StorageConfig:
    return StorageConfig(
        data_dir=_get_env_str('SCRIPTDOCK_DATA_DIR', _default_data_dir()),
    )


def _build_update_config() -> UpdateConfig:
    return UpdateConfig(
        min_age=_get_env_float('SCRIPTDOCK_UPDATE_MIN_AGE', 0.0),
    )


fetch_config = _build_fetch_config()
injection_config = _build_injection_config()
browser_config = _build_browser_config()
storage_config = _build_storage_config()
update_config = _build_update_config()


# ============================================================
# 便捷函数
# ============================================================

def reload_config():
    """
    重新加载配置

    从环境变量重新读取所有配置。
    """
    global fetch_config, injection_config, browser_config, storage_config, update_config

    fetch_config = _build_fetch_config()
    injection_config = _build_injection_config()
    browser_config = _build_browser_config()
    storage_config = _build_storage_config()
    update_config = _build_update_config()
