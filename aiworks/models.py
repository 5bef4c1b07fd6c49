from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NodeState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorPolicy(str, Enum):
    CONTINUE = "continue"
    FAIL_FAST = "fail_fast"


class NodeData(BaseModel):
    label: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)
    inputs: list[str] = Field(default_factory=list)
    outputs: list[str] = Field(default_factory=list)


class Node(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    data: NodeData = Field(default_factory=NodeData)

    @property
    def label(self) -> str:
        return self.data.label or self.id


class Edge(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = ""
    source: str
    source_handle: str = Field(alias="sourceHandle")
    target: str
    target_handle: str = Field(alias="targetHandle")


class ExecutionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
        return payload


class ExecutionLog(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    node_id: str = Field(alias="nodeId")
    status: str
    message: str


class Workflow(BaseModel):
    id: str
    name: str
    description: str = ""
    nodes: list[Node]
    edges: list[Edge] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RunRequest(BaseModel):
    api_key: str = ""
    error_policy: ErrorPolicy | None = None


class ExecuteRequest(RunRequest):
    nodes: list[Node]
    edges: list[Edge] = Field(default_factory=list)


class ExecutionRecord(BaseModel):
    id: str
    workflow_id: str | None = None
    status: str
    started_at: datetime
    finished_at: datetime | None = None
    results: dict[str, ExecutionResult] | None = None
    logs: list[ExecutionLog] = Field(default_factory=list)
    error: str | None = None


def validate_graph(nodes: list[Node], edges: list[Edge]) -> list[str]:
    """Return structural problems with a node/edge set; empty when valid.

    Port names are only checked against nodes that declare ports.
    """
    errors: list[str] = []
    node_map: dict[str, Node] = {}
    for node in nodes:
        if node.id in node_map:
            errors.append(f"Duplicate node id: {node.id}")
        node_map[node.id] = node

    for edge in edges:
        source = node_map.get(edge.source)
        target = node_map.get(edge.target)
        if source is None:
            errors.append(f"Edge {edge.id or '?'} references unknown source node: {edge.source}")
        elif source.data.outputs and edge.source_handle not in source.data.outputs:
            errors.append(
                f"Edge {edge.id or '?'} uses undeclared output '{edge.source_handle}' of node {edge.source}"
            )
        if target is None:
            errors.append(f"Edge {edge.id or '?'} references unknown target node: {edge.target}")
        elif target.data.inputs and edge.target_handle not in target.data.inputs:
            errors.append(
                f"Edge {edge.id or '?'} uses undeclared input '{edge.target_handle}' of node {edge.target}"
            )
    return errors


def validate_workflow(workflow: Workflow) -> list[str]:
    errors: list[str] = []
    if not workflow.name.strip():
        errors.append("Workflow name is required")
    if not workflow.nodes:
        errors.append("Workflow must have at least one node")
    errors.extend(validate_graph(workflow.nodes, workflow.edges))
    return errors
