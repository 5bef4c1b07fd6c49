"""Shared fixtures: a fake LLM client and a registry of test handlers."""

from __future__ import annotations

from typing import Any

import pytest

from aiworks.errors import InvalidAPIKeyError, LLMError
from aiworks.llm import GenerationResult
from aiworks.models import Edge, Node, NodeData
from aiworks.nodes import NodeRegistry, NodeSpec


class FakeLLM:
    """Stands in for GeminiClient; records every prompt it is given."""

    def __init__(
        self,
        text: str = "Fake response",
        responses: list[str] | None = None,
        fail: bool = False,
        valid_key: bool = True,
    ) -> None:
        self.text = text
        self.responses = list(responses or [])
        self.fail = fail
        self.valid_key = valid_key
        self.calls: list[dict[str, Any]] = []
        self.validated: list[str] = []

    @property
    def prompts(self) -> list[str]:
        return [call["prompt"] for call in self.calls]

    async def generate(self, prompt: str, *, api_key: str, model: str | None = None, **kwargs: Any) -> GenerationResult:
        self.calls.append({"prompt": prompt, "api_key": api_key, "model": model, **kwargs})
        if self.fail:
            raise LLMError("LLM API error: quota exceeded", model=model)
        text = self.responses.pop(0) if self.responses else self.text
        return GenerationResult(text=text, model=model or "gemini-1.5-flash")

    async def validate_key(self, api_key: str) -> None:
        self.validated.append(api_key)
        if not self.valid_key:
            raise InvalidAPIKeyError("gemini", "API key not valid")


async def echo_handler(inputs: dict[str, Any], _params: dict[str, Any]) -> dict[str, Any]:
    return dict(inputs)


async def emit_handler(_inputs: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
    return {"text": params.get("value")}


async def boom_handler(_inputs: dict[str, Any], _params: dict[str, Any]) -> dict[str, Any]:
    raise RuntimeError("handler exploded")


async def params_handler(_inputs: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
    return {"params": dict(params)}


def make_node(node_id: str, node_type: str = "echo", **parameters: Any) -> Node:
    return Node(id=node_id, type=node_type, data=NodeData(label=node_id.upper(), parameters=parameters))


def make_edge(source: str, target: str, source_handle: str = "text", target_handle: str = "text") -> Edge:
    return Edge(
        id=f"{source}-{target}",
        source=source,
        sourceHandle=source_handle,
        target=target,
        targetHandle=target_handle,
    )


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def test_registry() -> NodeRegistry:
    registry = NodeRegistry()
    registry.register(NodeSpec(type_name="echo", description="Echo inputs", handler=echo_handler))
    registry.register(NodeSpec(type_name="emit", description="Emit a value", handler=emit_handler))
    registry.register(NodeSpec(type_name="boom", description="Always fails", handler=boom_handler))
    return registry
