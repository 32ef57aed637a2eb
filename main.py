"""
ScriptDock - 用户脚本管理与注入工具

程序入口。
启动后先执行一次自动更新并打开目标页面，然后从标准输入逐行读取 JSON 命令:

    {"command": "toggle_script", "payload": {"id": "...", "enabled": false}}

每条命令的响应以一行 JSON 写到标准输出。
"""

import json
import logging
import os
import sys

# 确保程序根目录在 Python 路径中
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from scriptdock.application import CommandDispatcher, ScriptManager
from scriptdock.exceptions import ScriptDockError
from scriptdock.utils.logger import get_logger, setup_logging

logger = get_logger("scriptdock.main")


def _handle_line(dispatcher: CommandDispatcher, line: str) -> dict:
    try:
        message = json.loads(line)
    except ValueError as e:
        return {"ok": False, "error": {"kind": "InvalidRequest", "message": f"Invalid JSON: {e}"}}
    if not isinstance(message, dict) or "command" not in message:
        return {"ok": False, "error": {"kind": "InvalidRequest", "message": "Expected {\"command\": ..., \"payload\": {...}}"}}
    return dispatcher.dispatch(message["command"], message.get("payload"))


def main():
    """程序入口"""
    level = logging.DEBUG if os.environ.get("SCRIPTDOCK_DEBUG") else logging.INFO
    # 标准输出留给命令响应
    setup_logging(level=level, log_file=os.environ.get("SCRIPTDOCK_LOG_FILE"), stream=sys.stderr)

    manager = ScriptManager.create()
    dispatcher = CommandDispatcher(manager)
    logger.info(f"[Main] 数据目录: {manager.get_data_dir()}")

    try:
        manager.start()
    except ScriptDockError as e:
        # 浏览器不可用时仍然提供命令接口，稍后可再次 open_target_page
        logger.error(f"[Main] 首次加载失败: {e}")

    try:
        for line in sys.stdin:
            line = line.strip()
            if not line:
                continue
            response = _handle_line(dispatcher, line)
            sys.stdout.write(json.dumps(response, ensure_ascii=False) + "\n")
            sys.stdout.flush()
    except KeyboardInterrupt:
        pass
    finally:
        logger.info("[Main] 退出")


if __name__ == "__main__":
    main()
