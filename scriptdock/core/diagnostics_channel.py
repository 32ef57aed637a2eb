"""
诊断通道

非致命诊断（依赖环、注入截断、握手超时）的旁路出口:
写入 WARNING 日志、通知订阅者，并保留最近的若干条供展示层拉取。
"""

import threading
from collections import deque
from typing import Callable, List

from scriptdock.domain.entities import Diagnostic
from scriptdock.utils.logger import get_logger

logger = get_logger(__name__)

Listener = Callable[[Diagnostic], None]


class DiagnosticsChannel:
    """线程安全的诊断队列"""

    def __init__(self, capacity: int = 100):
        self._items = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener):
        with self._lock:
            self._listeners.append(listener)

    def publish(self, diagnostic: Diagnostic):
        logger.warning(f"[Diagnostics] {diagnostic.kind}: {diagnostic.describe()}")
        with self._lock:
            self._items.append(diagnostic)
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(diagnostic)
            except Exception as e:
                logger.error(f"[Diagnostics] 订阅者处理失败: {e}")

    def drain(self) -> List[Diagnostic]:
        """取出并清空当前保留的诊断"""
        with self._lock:
            items = list(self._items)
            self._items.clear()
        return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
