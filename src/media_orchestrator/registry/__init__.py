"""Task registry backends and models."""

from media_orchestrator.registry.base import TaskRegistry
from media_orchestrator.registry.memory import InMemoryTaskRegistry, TaskSubscription
from media_orchestrator.registry.models import (
    TERMINAL_STATUSES,
    TaskMetadata,
    TaskRecord,
    TaskStats,
    TaskStatus,
    TransitionResult,
)

__all__ = [
    "InMemoryTaskRegistry",
    "TERMINAL_STATUSES",
    "TaskMetadata",
    "TaskRecord",
    "TaskRegistry",
    "TaskStats",
    "TaskStatus",
    "TaskSubscription",
    "TransitionResult",
]
