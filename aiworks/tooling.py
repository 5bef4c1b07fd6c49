from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from langchain_core.tools import StructuredTool

from .errors import ExpressionError
from .expression import evaluate


def _search(query: str) -> dict[str, Any]:
    # Placeholder results; no search backend is wired in.
    return {
        "query": query,
        "results": [
            {"title": "Search result 1", "snippet": "This is a simulated search result."},
            {"title": "Search result 2", "snippet": "Real search is not implemented."},
        ],
    }


def _code(code: str) -> dict[str, Any]:
    # Code is echoed back, never executed.
    return {
        "code": code,
        "result": "Code execution output would appear here. (simulated)",
        "logs": [],
    }


def _calculator(expression: str) -> str:
    try:
        result = evaluate(expression, {})
    except ExpressionError as exc:
        return f"Calculation error: {exc}"
    return str(result)


def _utc_time() -> str:
    return datetime.now(timezone.utc).isoformat()


def tool_catalog() -> list[dict[str, str]]:
    return [
        {"name": "search", "description": "Return placeholder web search results for a query."},
        {"name": "code", "description": "Echo code with a simulated execution result."},
        {"name": "calculator", "description": "Evaluate a simple math expression."},
        {"name": "utc_time", "description": "Get current UTC timestamp."},
    ]


def build_tools() -> dict[str, StructuredTool]:
    return {
        "search": StructuredTool.from_function(
            func=_search,
            name="search",
            description="Search the web for a query and return result titles and snippets.",
        ),
        "code": StructuredTool.from_function(
            func=_code,
            name="code",
            description="Run a code snippet and return its output.",
        ),
        "calculator": StructuredTool.from_function(
            func=_calculator,
            name="calculator",
            description="Evaluate a math expression, e.g. '(42*7)/3'.",
        ),
        "utc_time": StructuredTool.from_function(
            func=_utc_time,
            name="utc_time",
            description="Return the current UTC timestamp.",
        ),
    }


def tool_argument(tool_name: str) -> str | None:
    """Name of the single string argument a tool takes, if any."""
    return {"search": "query", "code": "code", "calculator": "expression"}.get(tool_name)
