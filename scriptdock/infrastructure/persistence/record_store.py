"""
脚本记录持久化适配器 - 基础设施层

以 JSON 文件保存脚本记录，按 id 作为键。
写入先落到临时文件再原子替换，避免中途崩溃留下半个文件。
"""
import json
import os
from typing import Any, Dict

from scriptdock.utils.logger import get_logger

logger = get_logger(__name__)


def write_json_atomic(filepath: str, data: Any):
    """写入临时文件后用 os.replace 原子替换目标文件"""
    tmp_path = f"{filepath}.tmp"
    with open(tmp_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, filepath)


class JsonRecordStore:
    """脚本记录存储（scripts.json）"""

    DEFAULT_FILENAME = "scripts.json"

    def __init__(self, base_dir: str, filename: str = DEFAULT_FILENAME):
        self.base_dir = base_dir
        self.filepath = os.path.join(base_dir, filename)
        os.makedirs(base_dir, exist_ok=True)

    @property
    def location(self) -> str:
        return self.filepath

    def load(self) -> Dict[str, Dict[str, Any]]:
        """
        加载全部记录

        兼容旧版列表格式 [{"id": ...}, ...]，载入后转换为按 id 索引的字典。
        文件不存在时返回空字典；文件损坏时记录错误并返回空字典。

        Returns:
            {id: 记录字典}
        """
        if not os.path.exists(self.filepath):
            return {}

        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"[RecordStore] 读取 {self.filepath} 失败: {e}")
            return {}

        if isinstance(data, list):
            logger.info(f"[RecordStore] 检测到旧版列表格式，共 {len(data)} 条记录")
            return {item["id"]: item for item in data if isinstance(item, dict) and "id" in item}
        if isinstance(data, dict):
            return data

        logger.error(f"[RecordStore] 无法识别的文件内容类型: {type(data).__name__}")
        return {}

    def save(self, records: Dict[str, Dict[str, Any]]):
        """
        保存全部记录

        Args:
            records: {id: 记录字典}
        """
        write_json_atomic(self.filepath, records)
