from __future__ import annotations

from ..llm import GeminiClient
from .agent import register_agent_nodes
from .ai import register_ai_nodes
from .base import NodeRegistry, NodeSpec, ParameterSpec
from .builtin import BUILTIN_KINDS, BuiltinNodes


def build_registry(llm: GeminiClient) -> NodeRegistry:
    registry = NodeRegistry()
    register_ai_nodes(registry, llm)
    register_agent_nodes(registry, llm)
    return registry


__all__ = [
    "BUILTIN_KINDS",
    "BuiltinNodes",
    "NodeRegistry",
    "NodeSpec",
    "ParameterSpec",
    "build_registry",
]
