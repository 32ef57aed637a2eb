"""
顺序与依赖解析器

把存储中的 (enabled, order, requires) 状态转换为唯一确定的执行序列。

规则:
1. 只保留启用的脚本
2. A 的 requires 中含有 B 的 name 时，B 必须先于 A（匹配键为 name，精确匹配）
3. 无法解析的依赖视为不存在，脚本照常调度
4. 没有约束的节点之间按 (order, id) 升序决胜
5. 依赖成环的脚本作为一个整体按 (order, id) 调度，并产生非致命的 ResolutionWarning
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

import networkx as nx

from scriptdock.domain.entities import ResolutionWarning, ScriptRecord
from scriptdock.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedScript:
    """执行序列中的一项"""
    id: str
    name: str
    code: str
    requires: Tuple[str, ...] = ()


@dataclass
class Resolution:
    """解析结果"""
    sequence: List[ResolvedScript] = field(default_factory=list)
    warnings: List[ResolutionWarning] = field(default_factory=list)

    @property
    def ids(self) -> List[str]:
        return [entry.id for entry in self.sequence]


def build_dependency_graph(records: Iterable[ScriptRecord]) -> nx.DiGraph:
    """
    构建依赖图

    节点为记录 id，边 B -> A 表示 A 依赖 B。
    同名脚本有多个时，依赖指向所有同名脚本。
    """
    graph = nx.DiGraph()
    by_name: Dict[str, List[str]] = {}

    for record in records:
        graph.add_node(record.id, record=record)
        by_name.setdefault(record.name, []).append(record.id)

    for node_id, data in list(graph.nodes(data=True)):
        record: ScriptRecord = data["record"]
        for key in record.requires:
            targets = by_name.get(key)
            if not targets:
                logger.debug(f"[Resolver] {record.name}: 未解析的依赖 {key}")
                continue
            for dep_id in targets:
                graph.add_edge(dep_id, node_id)

    return graph


def resolve(records: Iterable[ScriptRecord]) -> Resolution:
    """
    计算注入序列

    Args:
        records: 全部记录（包括禁用的）

    Returns:
        Resolution: 有序序列 + 依赖环警告
    """
    enabled = [r for r in records if r.enabled]
    graph = build_dependency_graph(enabled)

    # 强连通分量缩点后得到 DAG，每个分量内按 (order, id) 排序
    condensed = nx.condensation(graph)
    members: Dict[int, List[ScriptRecord]] = {}
    for component, data in condensed.nodes(data=True):
        members[component] = sorted(
            (graph.nodes[node_id]["record"] for node_id in data["members"]),
            key=lambda r: r.sort_key,
        )

    resolution = Resolution()

    for component in nx.lexicographical_topological_sort(condensed, key=lambda c: members[c][0].sort_key):
        component_records = members[component]
        is_cycle = len(component_records) > 1 or graph.has_edge(component_records[0].id, component_records[0].id)
        if is_cycle:
            warning = ResolutionWarning(
                script_ids=[r.id for r in component_records],
                script_names=[r.name for r in component_records],
            )
            resolution.warnings.append(warning)
            logger.warning(f"[Resolver] {warning.describe()}")

        for record in component_records:
            resolution.sequence.append(
                ResolvedScript(id=record.id, name=record.name, code=record.code, requires=tuple(record.requires))
            )

    return resolution
