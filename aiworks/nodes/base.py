from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

NodeHandler = Callable[[dict[str, Any], dict[str, Any]], Awaitable[dict[str, Any]]]


@dataclass(slots=True)
class ParameterSpec:
    name: str
    default: Any = None
    description: str = ""
    options: list[Any] = field(default_factory=list)
    required: bool = False


@dataclass(slots=True)
class NodeSpec:
    type_name: str
    description: str
    handler: NodeHandler
    name: str = ""
    category: str = "General"
    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    parameters: list[ParameterSpec] = field(default_factory=list)

    def defaults(self) -> dict[str, Any]:
        return {param.name: param.default for param in self.parameters if param.default is not None}

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type_name,
            "name": self.name or self.type_name,
            "description": self.description,
            "category": self.category,
            "inputs": list(self.inputs),
            "outputs": list(self.outputs),
            "parameters": [
                {
                    "name": param.name,
                    "default": param.default,
                    "description": param.description,
                    "options": list(param.options),
                    "required": param.required,
                }
                for param in self.parameters
            ],
        }


class NodeRegistry:
    def __init__(self) -> None:
        self._nodes: dict[str, NodeSpec] = {}

    def register(self, spec: NodeSpec) -> None:
        self._nodes[spec.type_name] = spec

    def lookup(self, type_name: str) -> NodeSpec | None:
        return self._nodes.get(type_name)

    def get(self, type_name: str) -> NodeSpec:
        if type_name not in self._nodes:
            raise KeyError(f"Unknown node type: {type_name}")
        return self._nodes[type_name]

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._nodes

    def list_types(self) -> list[str]:
        return sorted(self._nodes)

    def list_specs(self) -> list[dict[str, Any]]:
        return [self._nodes[key].to_dict() for key in sorted(self._nodes)]

    def by_category(self, category: str) -> list[NodeSpec]:
        return [self._nodes[key] for key in sorted(self._nodes) if self._nodes[key].category == category]

    def search(self, query: str) -> list[NodeSpec]:
        needle = query.lower()
        return [
            spec
            for key, spec in sorted(self._nodes.items())
            if needle in key.lower()
            or needle in spec.name.lower()
            or needle in spec.description.lower()
        ]
