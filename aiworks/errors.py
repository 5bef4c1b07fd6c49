"""AI Works exception hierarchy.

All exceptions inherit from AIWorksError so callers can catch the whole family.
"""

from __future__ import annotations


class AIWorksError(Exception):
    """Base exception for all AI Works errors."""


class ConfigurationError(AIWorksError):
    """Configuration-related errors."""


class MissingAPIKeyError(ConfigurationError):
    """No API key was supplied for a run."""

    def __init__(self, provider: str = "gemini") -> None:
        super().__init__(f"API key for '{provider}' was not provided.")
        self.provider = provider


class InvalidAPIKeyError(ConfigurationError):
    """The provider rejected the API key."""

    def __init__(self, provider: str = "gemini", reason: str | None = None) -> None:
        message = f"API key for '{provider}' is invalid."
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)
        self.provider = provider


class WorkflowValidationError(AIWorksError):
    """The workflow graph is structurally invalid."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = list(errors)


class WorkflowCycleError(AIWorksError):
    """The workflow graph contains a dependency cycle."""

    def __init__(self, node_ids: list[str]) -> None:
        super().__init__(f"Workflow graph has a cycle involving: {', '.join(node_ids)}")
        self.node_ids = list(node_ids)


class NodeExecutionError(AIWorksError):
    """A node handler could not produce a result."""


class UnsupportedNodeTypeError(NodeExecutionError):
    def __init__(self, node_type: str) -> None:
        super().__init__(f"Unsupported node type: {node_type}")
        self.node_type = node_type


class MissingInputError(NodeExecutionError):
    def __init__(self, node_type: str, port: str) -> None:
        super().__init__(f"{node_type} expected input '{port}' but none was provided")
        self.node_type = node_type
        self.port = port


class ExpressionError(AIWorksError):
    """An expression could not be parsed or evaluated."""


class LLMError(AIWorksError):
    """The LLM provider returned an error or an unusable response."""

    def __init__(
        self,
        message: str,
        *,
        provider: str = "gemini",
        model: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code
