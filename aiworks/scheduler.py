from __future__ import annotations

import logging
from collections import deque

from .models import Edge, Node

logger = logging.getLogger(__name__)


def topological_order(nodes: list[Node], edges: list[Edge]) -> list[str]:
    """Order node ids so every node follows the sources of its incoming edges.

    Ties are broken FIFO: roots in node-list order, then successors in the
    order they become ready. Nodes on a cycle (and anything downstream of one)
    never reach in-degree zero and are left out; a warning is logged.
    Edges pointing at unknown node ids are ignored here.
    """
    successors: dict[str, list[str]] = {node.id: [] for node in nodes}
    indegree: dict[str, int] = {node.id: 0 for node in nodes}

    for edge in edges:
        if edge.source not in successors or edge.target not in indegree:
            continue
        successors[edge.source].append(edge.target)
        indegree[edge.target] += 1

    queue = deque(node_id for node_id, degree in indegree.items() if degree == 0)
    order: list[str] = []

    while queue:
        node_id = queue.popleft()
        order.append(node_id)
        for target in successors[node_id]:
            indegree[target] -= 1
            if indegree[target] == 0:
                queue.append(target)

    if len(order) != len(indegree):
        logger.warning(
            "Workflow graph has a dependency cycle; %d node(s) will not run: %s",
            len(indegree) - len(order),
            ", ".join(unscheduled_nodes(nodes, order)),
        )

    return order


def unscheduled_nodes(nodes: list[Node], order: list[str]) -> list[str]:
    scheduled = set(order)
    return [node.id for node in nodes if node.id not in scheduled]
