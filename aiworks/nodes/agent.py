from __future__ import annotations

import asyncio
from typing import Any

from ..config import app_config
from ..errors import MissingInputError, NodeExecutionError
from ..llm import GeminiClient
from .base import NodeRegistry, NodeSpec, ParameterSpec

STRATEGIES = ("sequential", "parallel", "conditional")


def _normalize_agents(raw_agents: Any, *, default_model: str) -> list[dict[str, str]]:
    if not isinstance(raw_agents, list) or not raw_agents:
        raise ValueError("multi-agent.agents must be a non-empty list")

    normalized: list[dict[str, str]] = []
    for idx, item in enumerate(raw_agents):
        if not isinstance(item, dict):
            raise ValueError("multi-agent.agents entries must be objects")
        name = item.get("name")
        system_prompt = item.get("systemPrompt", item.get("system_prompt", ""))
        model = item.get("model", default_model)

        if not isinstance(model, str) or not model:
            raise ValueError("Each multi-agent.agents[].model must be a non-empty string")
        if not isinstance(system_prompt, str):
            raise ValueError("Each multi-agent.agents[].systemPrompt must be a string")

        normalized.append(
            {
                "name": str(name) if isinstance(name, str) and name else f"agent_{idx + 1}",
                "system_prompt": system_prompt,
                "model": model,
            }
        )
    return normalized


class MultiAgentNode:
    """Runs a team of prompt-configured agents over one request.

    ``sequential`` feeds each agent the previous agent's answer, ``parallel``
    asks every agent independently, ``conditional`` runs the second agent only
    when the first produced a non-empty answer.
    """

    def __init__(self, llm: GeminiClient) -> None:
        self.llm = llm

    async def _ask(self, agent: dict[str, str], prompt: str, params: dict[str, Any]) -> dict[str, Any]:
        full_prompt = f"{agent['system_prompt']}\n\n{prompt}" if agent["system_prompt"] else prompt
        result = await self.llm.generate(
            full_prompt,
            api_key=str(params.get("apiKey") or ""),
            model=agent["model"],
            temperature=params.get("temperature"),
        )
        return {"name": agent["name"], "model": agent["model"], "output": result.text}

    def _follow_up(self, original: str, context: str) -> str:
        template = app_config.prompt(
            "multi_agent",
            "Original request:\n{original}\n\nContext from previous agents:\n{context}\n\n"
            "Continue and improve the answer.",
        )
        return template.format(original=original, context=context)

    async def handler(self, inputs: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
        prompt = inputs.get("prompt")
        if not prompt:
            raise MissingInputError("multi-agent", "prompt")
        original = str(prompt)
        strategy = params.get("strategy", "sequential")
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown orchestration strategy: {strategy}")
        default_model = str(params.get("model") or app_config.llm_settings()["model"])
        agents = _normalize_agents(params.get("agents"), default_model=default_model)

        trace: list[dict[str, Any]] = []
        if strategy == "parallel":
            trace = list(await asyncio.gather(*(self._ask(agent, original, params) for agent in agents)))
            output = "\n\n".join(f"[{step['name']}] {step['output']}" for step in trace)
        elif strategy == "conditional":
            first = await self._ask(agents[0], original, params)
            trace.append(first)
            output = first["output"]
            if output.strip() and len(agents) > 1:
                second = await self._ask(agents[1], self._follow_up(original, output), params)
                trace.append(second)
                output = second["output"]
        else:
            running_context = original
            for idx, agent in enumerate(agents):
                step_input = running_context if idx == 0 else self._follow_up(original, running_context)
                step = await self._ask(agent, step_input, params)
                trace.append(step)
                if step["output"].strip():
                    running_context = step["output"]
            if not any(step["output"].strip() for step in trace):
                raise NodeExecutionError("No agent produced a response")
            output = running_context

        return {"output": output, "trace": trace}


def register_agent_nodes(registry: NodeRegistry, llm: GeminiClient) -> None:
    node = MultiAgentNode(llm)
    registry.register(
        NodeSpec(
            type_name="multi-agent",
            name="Multi-agent team",
            description="Runs several prompt-configured agents sequentially, in parallel or conditionally.",
            category="Agents",
            handler=node.handler,
            inputs=["prompt"],
            outputs=["output", "trace"],
            parameters=[
                ParameterSpec("strategy", "sequential", "Orchestration strategy", list(STRATEGIES)),
                ParameterSpec("agents", None, "List of {name, systemPrompt, model}", required=True),
                ParameterSpec("model", None, "Default model for agents without one"),
                ParameterSpec("temperature", 0.7, "Sampling temperature"),
            ],
        )
    )
