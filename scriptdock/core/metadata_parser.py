"""
元数据解析器

从脚本开头的注释块中提取 name / version / description / author / requires。

支持两种头部:
    // ==UserScript==
    // @name     Foo
    // @require  https://cdn.example.com/lib.js
    // ==/UserScript==

以及没有 ==UserScript== 标记、直接以 // @key value 开头的注释行。
纯函数，无副作用；没有头部时返回空元数据。
"""

import re
from typing import Optional

from scriptdock.domain.entities import ScriptMetadata


BLOCK_OPEN = re.compile(r"^//\s*==UserScript==\s*$")
BLOCK_CLOSE = re.compile(r"^//\s*==/UserScript==\s*$")
KEY_LINE = re.compile(r"^//\s*@([\w:.-]+)(?:\s+(.*))?$")

SCALAR_KEYS = ("name", "version", "description", "author")


def parse_metadata(code: Optional[str]) -> ScriptMetadata:
    """
    解析脚本头部元数据

    Args:
        code: 脚本全文

    Returns:
        ScriptMetadata，未识别的键被忽略，标量键取第一次出现的值
    """
    metadata = ScriptMetadata()
    if not code:
        return metadata

    in_block = False
    started = False

    for raw_line in code.splitlines():
        line = raw_line.strip()

        if not line:
            # 头部之前的空行跳过；显式块内允许空行；否则空行结束头部
            if started and not in_block:
                break
            continue

        if not line.startswith("//"):
            break

        if BLOCK_OPEN.match(line):
            in_block = True
            started = True
            continue
        if BLOCK_CLOSE.match(line):
            break

        started = True
        match = KEY_LINE.match(line)
        if not match:
            continue

        key, value = match.group(1), (match.group(2) or "").strip()
        if not value:
            continue

        if key in SCALAR_KEYS:
            if getattr(metadata, key) is None:
                setattr(metadata, key, value)
        elif key == "require":
            metadata.requires.append(value)

    return metadata
