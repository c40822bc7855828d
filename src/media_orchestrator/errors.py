"""Exception taxonomy shared by adapters, the chat loop and the HTTP layer."""

from __future__ import annotations


class OrchestratorError(Exception):
    """Base class for orchestrator failures."""


class ConfigurationError(OrchestratorError):
    """A collaborator is missing required configuration (API key, base URL)."""


class ProviderError(OrchestratorError):
    """An upstream generator rejected or failed a request.

    Surfaced exactly once, either as a generation ``error`` event or as a
    ``failed`` task transition. Never retried automatically.
    """

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    """An upstream generator call exceeded its caller-supplied timeout."""


class ChatModelError(OrchestratorError):
    """The upstream chat model call failed; terminates the chat turn."""


class ToolExecutionError(OrchestratorError):
    """A tool invocation failed; recovered locally as an unsuccessful tool result."""

    def __init__(self, tool: str, message: str) -> None:
        super().__init__(message)
        self.tool = tool


class TaskNotFoundError(OrchestratorError):
    """Lookup of a task id the registry never issued (or already evicted)."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} does not exist")
        self.task_id = task_id
