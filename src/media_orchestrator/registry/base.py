"""Registry interface for generation task lifecycle."""

from __future__ import annotations

from typing import Any, Protocol

from media_orchestrator.generators.base import GenerationEnvelope, MediaType
from media_orchestrator.registry.models import TaskRecord, TaskStats, TaskStatus, TransitionResult


class TaskRegistry(Protocol):
    def create(self, task_type: MediaType, metadata: dict[str, Any] | None = None) -> TaskRecord: ...

    def get(self, task_id: str) -> TaskRecord | None: ...

    def transition(
        self,
        task_id: str,
        status: TaskStatus,
        *,
        progress: int | None = None,
        result: GenerationEnvelope | None = None,
        error: str | None = None,
        external_id: str | None = None,
    ) -> TransitionResult: ...

    def stats(self) -> TaskStats: ...

    def list_tasks(
        self, *, status: TaskStatus | None = None, task_type: MediaType | None = None
    ) -> list[TaskRecord]: ...

    def subscribe(self, task_id: str) -> Any: ...

    def evict_expired(self) -> int: ...
