from __future__ import annotations

import json
from typing import Any

from langchain_core.tools import StructuredTool

from ..errors import ExpressionError, MissingInputError, NodeExecutionError
from ..expression import Expression
from ..llm import GEMINI_MODELS, GeminiClient
from ..tooling import build_tools, tool_argument

BUILTIN_KINDS = ("input", "output", "process", "llm", "tool")


def _first_present(inputs: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in inputs:
            return inputs[key]
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


async def input_handler(_inputs: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
    input_type = params.get("inputType", "text")
    value = params.get("inputValue") or ""

    if input_type == "json":
        try:
            return {"data": json.loads(value or "{}")}
        except json.JSONDecodeError as exc:
            raise NodeExecutionError(f"Invalid JSON input: {exc.msg}") from exc
    if input_type == "api":
        # Describes the request only; nothing is fetched.
        return {
            "response": {
                "message": "API input simulated; no request was made.",
                "url": params.get("url"),
                "method": params.get("method", "GET"),
            }
        }
    return {"text": value}


async def output_handler(inputs: dict[str, Any], _params: dict[str, Any]) -> dict[str, Any]:
    return {"output": _first_present(inputs, "text", "data", "output")}


async def process_handler(inputs: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
    process_type = params.get("processType", "transform")
    data = _first_present(inputs, "data", "text")

    if process_type == "transform":
        source = params.get("transformFunction") or "data"
        try:
            return {"output": Expression(source).evaluate({"data": data})}
        except ExpressionError as exc:
            raise NodeExecutionError(f"Transform failed: {exc}") from exc

    if process_type == "filter":
        source = params.get("filterCondition") or "True"
        if isinstance(data, list):
            items = data
        else:
            items = [] if data is None else [data]
        try:
            condition = Expression(source)
            return {"filtered": [item for item in items if condition.evaluate({"item": item})]}
        except ExpressionError as exc:
            raise NodeExecutionError(f"Filter failed: {exc}") from exc

    return {"output": data}


class BuiltinNodes:
    """Handlers for the node kinds every workflow can use without registration."""

    def __init__(self, llm: GeminiClient, tools: dict[str, StructuredTool] | None = None) -> None:
        self.llm = llm
        self.tools = tools if tools is not None else build_tools()
        self._handlers = {
            "input": input_handler,
            "output": output_handler,
            "process": process_handler,
            "llm": self.llm_handler,
            "tool": self.tool_handler,
        }

    def lookup(self, kind: str):
        return self._handlers.get(kind)

    async def llm_handler(self, inputs: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
        input_text = _as_text(_first_present(inputs, "prompt", "text", "data"))
        template = params.get("prompt")
        prompt = template.replace("{input}", input_text) if isinstance(template, str) and template else input_text
        if not prompt:
            raise MissingInputError("llm", "prompt")

        model = params.get("model")
        if model not in GEMINI_MODELS:
            model = None
        result = await self.llm.generate(
            prompt,
            api_key=str(params.get("apiKey") or ""),
            model=model,
            temperature=params.get("temperature", 0.7),
            max_output_tokens=params.get("maxTokens"),
        )
        return {"text": result.text, "model": result.model}

    async def tool_handler(self, inputs: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
        tool_type = str(params.get("toolType", ""))
        tool = self.tools.get(tool_type)
        if tool is None:
            return {"message": f"Unsupported tool type: {tool_type}"}

        argument = tool_argument(tool_type)
        args: dict[str, Any] = {}
        if argument:
            value = params.get(argument)
            if not value:
                value = _as_text(_first_present(inputs, argument, "text", "data"))
            args[argument] = value
        result = await tool.ainvoke(args)
        return result if isinstance(result, dict) else {"result": result}
