from .engine import ExecutionContext, WorkflowEngine, collect_inputs, execute_workflow
from .models import Edge, ErrorPolicy, ExecutionResult, Node, NodeData, NodeState, Workflow
from .scheduler import topological_order

__all__ = [
    "Edge",
    "ErrorPolicy",
    "ExecutionContext",
    "ExecutionResult",
    "Node",
    "NodeData",
    "NodeState",
    "Workflow",
    "WorkflowEngine",
    "collect_inputs",
    "execute_workflow",
    "topological_order",
]
