from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .errors import (
    MissingAPIKeyError,
    NodeExecutionError,
    UnsupportedNodeTypeError,
    WorkflowCycleError,
    WorkflowValidationError,
)
from .llm import GeminiClient
from .models import Edge, ErrorPolicy, ExecutionLog, ExecutionResult, Node, NodeState, validate_graph
from .nodes import BuiltinNodes, NodeRegistry, build_registry
from .scheduler import topological_order, unscheduled_nodes

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "start": logging.INFO,
    "success": logging.INFO,
    "error": logging.WARNING,
    "skipped": logging.WARNING,
}


@dataclass
class ExecutionContext:
    """State of a single run. Never shared between runs."""

    variables: dict[str, Any] = field(default_factory=dict)
    logs: list[ExecutionLog] = field(default_factory=list)
    results: dict[str, ExecutionResult] = field(default_factory=dict)
    states: dict[str, NodeState] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @classmethod
    def for_nodes(cls, nodes: Iterable[Node]) -> ExecutionContext:
        return cls(states={node.id: NodeState.IDLE for node in nodes})

    def log(self, node_id: str, status: str, message: str) -> ExecutionLog:
        entry = ExecutionLog(node_id=node_id, status=status, message=message)
        self.logs.append(entry)
        logger.log(_LOG_LEVELS.get(status, logging.INFO), "[%s] %s: %s", status.upper(), node_id, message)
        return entry

    def record(self, node_id: str, result: ExecutionResult) -> None:
        if node_id in self.results:
            raise RuntimeError(f"Result for node {node_id} was already recorded")
        self.results[node_id] = result

    def state_of(self, node_id: str) -> NodeState:
        return self.states.get(node_id, NodeState.IDLE)

    @property
    def status(self) -> str:
        if not self.results and not self.skipped:
            return "success"
        failed = any(not result.success for result in self.results.values())
        if failed and not any(result.success for result in self.results.values()):
            return "failed"
        if failed or self.skipped:
            return "partial"
        return "success"


def collect_inputs(node_id: str, edges: list[Edge], results: Mapping[str, ExecutionResult]) -> dict[str, Any]:
    """Gather upstream outputs for ``node_id`` along matching ports.

    Ports whose source failed, has not run, or produced no value for the
    handle are left out of the returned record.
    """
    inputs: dict[str, Any] = {}
    for edge in edges:
        if edge.target != node_id:
            continue
        source_result = results.get(edge.source)
        if source_result is None or not source_result.success or source_result.data is None:
            continue
        if edge.source_handle in source_result.data:
            inputs[edge.target_handle] = source_result.data[edge.source_handle]
    return inputs


class WorkflowEngine:
    def __init__(
        self,
        registry: NodeRegistry,
        llm: GeminiClient,
        builtins: BuiltinNodes | None = None,
    ) -> None:
        self.registry = registry
        self.llm = llm
        self.builtins = builtins or BuiltinNodes(llm)

    async def run(
        self,
        nodes: list[Node],
        edges: list[Edge],
        api_key: str,
        *,
        policy: ErrorPolicy = ErrorPolicy.CONTINUE,
        validate_key: bool = False,
        context: ExecutionContext | None = None,
    ) -> ExecutionContext:
        ctx = context if context is not None else ExecutionContext.for_nodes(nodes)

        if not api_key or not api_key.strip():
            raise MissingAPIKeyError("gemini")
        if validate_key:
            await self.llm.validate_key(api_key)

        errors = validate_graph(nodes, edges)
        if errors:
            raise WorkflowValidationError(errors)

        order = topological_order(nodes, edges)
        skipped = unscheduled_nodes(nodes, order)
        if skipped and policy is ErrorPolicy.FAIL_FAST:
            raise WorkflowCycleError(skipped)

        node_map = {node.id: node for node in nodes}
        for node in nodes:
            ctx.states.setdefault(node.id, NodeState.IDLE)

        for node_id in order:
            node = node_map[node_id]
            inputs = collect_inputs(node_id, edges, ctx.results)
            result = await self.execute_node(node, inputs, api_key, ctx)
            if not result.success and policy is ErrorPolicy.FAIL_FAST:
                logger.info("Stopping run after failure of node %s (fail_fast)", node_id)
                break

        for node_id in skipped:
            ctx.skipped.append(node_id)
            ctx.log(node_id, "skipped", f"Node {node_map[node_id].label} is part of a dependency cycle and was not run")

        return ctx

    def resolve_handler(self, node: Node, params: dict[str, Any]):
        """Return ``(handler, effective_params)`` for a node's type."""
        handler = self.builtins.lookup(node.type)
        if handler is not None:
            return handler, params
        spec = self.registry.lookup(node.type)
        if spec is not None:
            return spec.handler, {**spec.defaults(), **params}
        raise UnsupportedNodeTypeError(node.type)

    async def execute_node(
        self,
        node: Node,
        inputs: dict[str, Any],
        api_key: str,
        ctx: ExecutionContext,
    ) -> ExecutionResult:
        ctx.states[node.id] = NodeState.RUNNING
        ctx.log(node.id, "start", f"Node {node.label} started")

        params = {**node.data.parameters, "apiKey": api_key}
        try:
            handler, effective = self.resolve_handler(node, params)
            data = await handler(inputs, effective)
            if data is None:
                data = {}
            elif not isinstance(data, Mapping):
                raise NodeExecutionError(f"handler returned {type(data).__name__}, expected a mapping")
        except Exception as exc:
            result = ExecutionResult(success=False, error=str(exc) or type(exc).__name__)
            ctx.record(node.id, result)
            ctx.states[node.id] = NodeState.FAILED
            ctx.log(node.id, "error", f"Node {node.label} failed: {result.error}")
            return result

        result = ExecutionResult(success=True, data=dict(data))
        ctx.record(node.id, result)
        ctx.states[node.id] = NodeState.COMPLETED
        ctx.log(node.id, "success", f"Node {node.label} completed")
        return result


def _coerce_nodes(nodes: Iterable[Node | Mapping[str, Any]]) -> list[Node]:
    return [node if isinstance(node, Node) else Node.model_validate(node) for node in nodes]


def _coerce_edges(edges: Iterable[Edge | Mapping[str, Any]]) -> list[Edge]:
    return [edge if isinstance(edge, Edge) else Edge.model_validate(edge) for edge in edges]


async def execute_workflow(
    nodes: Iterable[Node | Mapping[str, Any]],
    edges: Iterable[Edge | Mapping[str, Any]],
    api_key: str,
    *,
    registry: NodeRegistry | None = None,
    llm: GeminiClient | None = None,
    policy: ErrorPolicy = ErrorPolicy.CONTINUE,
    validate_key: bool = False,
) -> dict[str, ExecutionResult]:
    """Run a workflow graph once and return each attempted node's result."""
    client = llm or GeminiClient()
    engine = WorkflowEngine(registry if registry is not None else build_registry(client), client)
    ctx = await engine.run(
        _coerce_nodes(nodes),
        _coerce_edges(edges),
        api_key,
        policy=policy,
        validate_key=validate_key,
    )
    return ctx.results
