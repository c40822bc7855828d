from media_orchestrator.tools.gateway import RegistryToolExecutor, ToolExecutor, ToolOutcome
from media_orchestrator.tools.registry import ToolSpec, build_registry, list_tools, tool_definitions

__all__ = [
    "RegistryToolExecutor",
    "ToolExecutor",
    "ToolOutcome",
    "ToolSpec",
    "build_registry",
    "list_tools",
    "tool_definitions",
]
