"""
注入脚本存储模块 - 基础设施层实现

把注入协议中运行在浏览器里的 JavaScript 集中管理。

协议:
1. BOOTSTRAP 作为文档开始脚本注册在隔离世界中，仅在顶层 frame 运行一次
2. 等待 document.documentElement（内容锚点）出现
3. 先挂载 PRELUDE（页面上下文中的错误捕获），再按顺序逐个挂载 <script> 节点；
   挂载即在页面真实上下文中同步执行
4. 每段脚本末尾写入完成标记；标记缺失说明该脚本失败，停止后续挂载
5. 握手状态以 JSON 写在 documentElement 的属性上（两个世界共享 DOM），
   由 STATUS_PROBE 从 Python 侧轮询
"""

import base64
import json
from dataclasses import dataclass
from typing import Final, List


STATUS_ATTR: Final[str] = "data-scriptdock-status"
DONE_ATTR: Final[str] = "data-scriptdock-done"
ERROR_ATTR: Final[str] = "data-scriptdock-error"


@dataclass(frozen=True)
class InjectionEntry:
    """待注入的一段脚本"""
    label: str
    code: str
    script_id: str = ""   # 依赖库没有 id


def encode_payload(code: str) -> str:
    """UTF-8 后 base64 编码，避免任何转义问题"""
    return base64.b64encode(code.encode("utf-8")).decode("ascii")


def decode_payload(payload: str) -> str:
    return base64.b64decode(payload.encode("ascii")).decode("utf-8")


class InjectionScripts:
    """
    注入 JavaScript 存储

    集中管理引导脚本模板，提供类型安全的构建方法。
    """

    # ============================================================
    # 页面上下文前置脚本：记录最近一次脚本错误
    # ============================================================
    PRELUDE: Final[str] = """
    (function() {
        window.addEventListener('error', function(event) {
            var root = document.documentElement;
            if (!root) return;
            var message = event && (event.message || (event.error && String(event.error)));
            root.setAttribute('__ERROR_ATTR__', message || 'Script error');
        });
    })();
    """.replace("__ERROR_ATTR__", ERROR_ATTR)

    # ============================================================
    # 握手状态探针（页面上下文执行）
    # ============================================================
    STATUS_PROBE: Final[str] = (
        "return document.documentElement ? "
        f"document.documentElement.getAttribute('{STATUS_ATTR}') : null;"
    )

    # ============================================================
    # 隔离世界引导脚本模板
    # ============================================================
    BOOTSTRAP_TEMPLATE: Final[str] = """
    (function() {
        if (window !== window.top) return;
        if (window.__scriptdockBootstrapped) return;
        window.__scriptdockBootstrapped = true;

        var TOKEN = __TOKEN__;
        var PRELUDE = __PRELUDE__;
        var ENTRIES = __ENTRIES__;
        var STATUS_ATTR = '__STATUS_ATTR__';
        var DONE_ATTR = '__DONE_ATTR__';
        var ERROR_ATTR = '__ERROR_ATTR__';

        function decode(str) {
            return decodeURIComponent(atob(str).split('').map(function(c) {
                return '%' + ('00' + c.charCodeAt(0).toString(16)).slice(-2);
            }).join(''));
        }

        function publish(state) {
            document.documentElement.setAttribute(STATUS_ATTR, JSON.stringify(state));
        }

        function attach(code, label) {
            var node = document.createElement('script');
            node.textContent = code;
            node.setAttribute('data-scriptdock', label);
            document.documentElement.appendChild(node);
            node.remove();
        }

        function inject() {
            var root = document.documentElement;
            var state = {
                token: TOKEN,
                phase: 'injecting',
                total: ENTRIES.length,
                completed: [],
                failed: null,
                error: null
            };
            publish(state);
            attach(decode(PRELUDE), 'scriptdock-prelude');

            for (var i = 0; i < ENTRIES.length; i++) {
                root.removeAttribute(DONE_ATTR);
                root.removeAttribute(ERROR_ATTR);
                attach(decode(ENTRIES[i].payload), ENTRIES[i].label);
                if (root.getAttribute(DONE_ATTR) !== TOKEN + ':' + i) {
                    state.failed = i;
                    state.error = root.getAttribute(ERROR_ATTR) || 'script did not complete';
                    break;
                }
                state.completed.push(i);
            }

            root.removeAttribute(DONE_ATTR);
            state.phase = state.failed === null ? 'done' : 'degraded';
            publish(state);
        }

        if (document.documentElement) {
            inject();
            return;
        }

        var observer = new MutationObserver(function() {
            if (document.documentElement) {
                observer.disconnect();
                inject();
            }
        });
        observer.observe(document, { childList: true });
    })();
    """

    @staticmethod
    def wrap_entry(code: str, token: str, index: int) -> str:
        """
        在脚本末尾追加完成标记

        脚本有语法错误或顶层抛出异常时标记不会被写入。
        """
        marker = json.dumps(f"{token}:{index}")
        return (f"{code}\n;document.documentElement.setAttribute('{DONE_ATTR}', {marker});\n")

    @classmethod
    def build_bootstrap(cls, entries: List[InjectionEntry], token: str) -> str:
        """
        生成引导脚本

        Args:
            entries: 按注入顺序排列的脚本
            token: 本轮注入的唯一标识，用于区分旧页面残留的状态

        Returns:
            JavaScript 代码
        """
        encoded = [
            {"label": entry.label, "payload": encode_payload(cls.wrap_entry(entry.code, token, index))}
            for index, entry in enumerate(entries)
        ]
        # 用户内容（ENTRIES）最后替换，避免脚本名里的占位符被二次替换
        return (
            cls.BOOTSTRAP_TEMPLATE
            .replace("__STATUS_ATTR__", STATUS_ATTR)
            .replace("__DONE_ATTR__", DONE_ATTR)
            .replace("__ERROR_ATTR__", ERROR_ATTR)
            .replace("__TOKEN__", json.dumps(token))
            .replace("__PRELUDE__", json.dumps(encode_payload(cls.PRELUDE)))
            .replace("__ENTRIES__", json.dumps(encoded))
        )
