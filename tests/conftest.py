"""
Pytest 配置文件

提供测试所需的 fixtures 和共享配置。
"""

import base64
import copy
import json
import re
import sys
from pathlib import Path

import pytest
import requests

# 确保项目根目录在 Python 路径中
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


# ============================================================
# 脚本样本
# ============================================================

def make_userscript(name="Foo", version="1.0", requires=(), body="console.log('hi');"):
    """生成带 ==UserScript== 头部的脚本文本"""
    lines = ["// ==UserScript==", f"// @name        {name}", f"// @version     {version}"]
    lines += [f"// @require     {r}" for r in requires]
    lines += ["// ==/UserScript==", "", body]
    return "\n".join(lines) + "\n"


@pytest.fixture
def userscript():
    return make_userscript


# ============================================================
# Fake HTTP
# ============================================================

class FakeResponse:
    """模拟 requests.Response 的最小子集"""

    def __init__(self, text="", status_code=200, content_type="application/javascript", reason="OK"):
        self.text = text
        self.content = text.encode("utf-8")
        self.status_code = status_code
        self.reason = reason
        self.headers = {"Content-Type": content_type} if content_type else {}


class FakeSession:
    """按 URL 返回预设响应或抛出预设异常"""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def serve(self, url, text="", **kwargs):
        self.routes[url] = FakeResponse(text, **kwargs)

    def fail(self, url, exc):
        self.routes[url] = exc

    def get(self, url, timeout=None, headers=None):
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            return FakeResponse("Not Found", status_code=404, reason="Not Found", content_type="text/html")
        if isinstance(route, Exception):
            raise route
        return route


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def fetcher(fake_session):
    """使用内存依赖缓存的 RemoteFetcher"""
    from scriptdock.infrastructure.http import RemoteFetcher
    from scriptdock.infrastructure.persistence import DependencyCache
    return RemoteFetcher(session=fake_session, dependency_cache=DependencyCache(), clock=lambda: 1_700_000_000)


# ============================================================
# 内存记录存储
# ============================================================

class MemoryRecordStore:
    """IRecordStore 的内存实现，记录每次保存的快照"""

    def __init__(self, initial=None):
        self.data = copy.deepcopy(initial or {})
        self.saves = []

    @property
    def location(self):
        return "/memory/scripts.json"

    def load(self):
        return copy.deepcopy(self.data)

    def save(self, records):
        self.data = copy.deepcopy(records)
        self.saves.append(self.data)


@pytest.fixture
def memory_backend():
    return MemoryRecordStore()


@pytest.fixture
def store(memory_backend, fetcher):
    from scriptdock.core.script_store import ScriptStore
    return ScriptStore(memory_backend, fetcher)


# ============================================================
# Fake 浏览器宿主
# ============================================================

_TOKEN_RE = re.compile(r"var TOKEN = (\"[^\"]*\");")
_ENTRIES_RE = re.compile(r"var ENTRIES = (.*);$", re.MULTILINE)


class FakeBrowserHost:
    """
    模拟浏览器宿主

    从注册的引导脚本中解析出 token 和条目，并按设定回放握手状态:
    - 默认全部执行成功
    - fail_at: 该下标的条目失败
    - hang: 页面始终不返回状态（锚点未出现）
    - stall: 进入 injecting 后不再前进
    - disconnected: 浏览器窗口已被关闭，注册与导航抛出底层异常
    """

    def __init__(self):
        self.bootstraps = []
        self.world_names = []
        self.navigations = []
        self.closed = 0
        self.open = False
        self.fail_at = None
        self.fail_error = "ReferenceError: boom is not defined"
        self.hang = False
        self.stall = False
        self.probe_delay = 0
        self.disconnected = False
        self._probes = 0

    # ---------- IBrowserHost ----------

    def _check_connected(self):
        if self.disconnected:
            self.open = False
            raise RuntimeError("PageDisconnectedError: 与页面的连接已断开")

    def install_bootstrap(self, script, world_name):
        self._check_connected()
        self.bootstraps.append(script)
        self.world_names.append(world_name)

    def navigate(self, url):
        self._check_connected()
        self.navigations.append(url)
        self.open = True
        self._probes = 0

    def run_js(self, script):
        self._probes += 1
        if self.hang or self._probes <= self.probe_delay:
            return None
        token = self.token
        total = len(self.entries)
        if self.stall:
            state = {"token": token, "phase": "injecting", "total": total, "completed": [], "failed": None, "error": None}
        elif self.fail_at is not None and self.fail_at < total:
            state = {"token": token, "phase": "degraded", "total": total,
                     "completed": list(range(self.fail_at)), "failed": self.fail_at, "error": self.fail_error}
        else:
            state = {"token": token, "phase": "done", "total": total,
                     "completed": list(range(total)), "failed": None, "error": None}
        return json.dumps(state)

    def is_open(self):
        return self.open

    def close(self):
        self.closed += 1
        self.open = False

    # ---------- 解析辅助 ----------

    @property
    def token(self):
        return json.loads(_TOKEN_RE.search(self.bootstraps[-1]).group(1))

    @property
    def entries(self):
        return json.loads(_ENTRIES_RE.search(self.bootstraps[-1]).group(1))

    @property
    def labels(self):
        return [e["label"] for e in self.entries]

    def payload(self, index):
        return base64.b64decode(self.entries[index]["payload"]).decode("utf-8")


@pytest.fixture
def browser_host():
    return FakeBrowserHost()


class FakeClock:
    """可手动推进的时钟，sleep 直接推进时间"""

    def __init__(self, now=0.0):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def pipeline(browser_host, fake_clock):
    from scriptdock.config import InjectionConfig
    from scriptdock.core.injection_pipeline import InjectionPipeline
    config = InjectionConfig(target_url="https://target.example/", anchor_timeout=5.0)
    return InjectionPipeline(browser_host, config, sleep=fake_clock.sleep, clock=fake_clock)


@pytest.fixture
def manager(store, pipeline, fetcher):
    from scriptdock.application import ScriptManager
    return ScriptManager(store, pipeline, dependency_cache=fetcher.dependency_cache, data_dir="/memory")


@pytest.fixture
def request_errors():
    """requests 异常样本"""
    return {
        "timeout": requests.exceptions.Timeout("timed out"),
        "connection": requests.exceptions.ConnectionError("refused"),
    }
