"""
配置模块单元测试
"""

import os
import pytest
from scriptdock import config as app_config
from scriptdock.config import (
    FetchConfig, InjectionConfig, BrowserConfig, StorageConfig, UpdateConfig,
    _get_env_float, _get_env_int, _get_env_bool, reload_config
)


class TestConfigDataclasses:
    """配置数据类测试"""

    def test_fetch_config_defaults(self):
        """FetchConfig 默认值"""
        config = FetchConfig()

        assert config.timeout == 30.0
        assert config.max_bytes == 10 * 1024 * 1024
        assert config.https_only is True

    def test_injection_config_defaults(self):
        """InjectionConfig 默认值"""
        config = InjectionConfig()

        assert config.target_url == "https://www.geoguessr.com/"
        assert config.anchor_timeout == 30.0
        assert config.poll_interval < config.max_poll_interval

    def test_storage_config_file_names(self):
        """StorageConfig 默认文件名"""
        config = StorageConfig(data_dir="/tmp/x")

        assert config.scripts_file == "scripts.json"
        assert config.dependencies_file == "dependencies.json"

    def test_browser_profile_lives_in_data_dir(self):
        """浏览器配置目录位于应用数据目录下"""
        config = BrowserConfig()

        assert "ScriptDock" in config.user_data_path
        assert config.addr == "127.0.0.1:9222"

    def test_update_config_refreshes_everything_by_default(self):
        """默认不跳过任何脚本"""
        assert UpdateConfig().min_age == 0.0


class TestEnvironmentVariables:
    """环境变量测试"""

    def test_get_env_float_with_valid_value(self, monkeypatch):
        """有效浮点数环境变量"""
        monkeypatch.setenv('TEST_FLOAT', '25.5')

        assert _get_env_float('TEST_FLOAT', 10.0) == 25.5

    def test_get_env_float_with_invalid_value(self, monkeypatch):
        """无效浮点数环境变量返回默认值"""
        monkeypatch.setenv('TEST_FLOAT', 'not_a_number')

        assert _get_env_float('TEST_FLOAT', 10.0) == 10.0

    def test_get_env_int_missing(self, monkeypatch):
        """未设置时返回默认值"""
        monkeypatch.delenv('TEST_INT', raising=False)

        assert _get_env_int('TEST_INT', 7) == 7

    @pytest.mark.parametrize("raw,expected", [
        ("1", True), ("true", True), ("Yes", True),
        ("0", False), ("off", False), ("maybe", True),
    ])
    def test_get_env_bool(self, monkeypatch, raw, expected):
        """布尔环境变量，无法识别时返回默认值"""
        monkeypatch.setenv('TEST_BOOL', raw)

        assert _get_env_bool('TEST_BOOL', True) is expected


class TestReloadConfig:
    """reload_config 测试"""

    def test_reload_reads_environment(self, monkeypatch, tmp_path):
        """重新加载后全局实例反映环境变量"""
        monkeypatch.setenv('SCRIPTDOCK_FETCH_TIMEOUT', '5')
        monkeypatch.setenv('SCRIPTDOCK_TARGET_URL', 'https://other.example/')
        monkeypatch.setenv('SCRIPTDOCK_DATA_DIR', str(tmp_path))
        monkeypatch.setenv('SCRIPTDOCK_BROWSER_LAUNCH', 'false')

        reload_config()
        try:
            assert app_config.fetch_config.timeout == 5.0
            assert app_config.injection_config.target_url == 'https://other.example/'
            assert app_config.storage_config.data_dir == str(tmp_path)
            assert app_config.browser_config.launch is False
        finally:
            for key in ('SCRIPTDOCK_FETCH_TIMEOUT', 'SCRIPTDOCK_TARGET_URL',
                        'SCRIPTDOCK_DATA_DIR', 'SCRIPTDOCK_BROWSER_LAUNCH'):
                monkeypatch.delenv(key, raising=False)
            reload_config()

    def test_non_positive_anchor_timeout_means_wait_forever(self, monkeypatch):
        """握手超时 <= 0 表示无限等待"""
        monkeypatch.setenv('SCRIPTDOCK_ANCHOR_TIMEOUT', '0')

        reload_config()
        try:
            assert app_config.injection_config.anchor_timeout is None
        finally:
            monkeypatch.delenv('SCRIPTDOCK_ANCHOR_TIMEOUT')
            reload_config()
