"""Task lifecycle records shared by the registry, dispatcher and API."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from media_orchestrator.generators.base import GenerationEnvelope, MediaType, WireModel

TaskStatus = Literal["pending", "processing", "completed", "failed"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})

TransitionReason = Literal["not_found", "stale_transition"]


class TaskMetadata(WireModel):
    prompt: str | None = None
    model: str | None = None
    external_id: str | None = None


class TaskRecord(WireModel):
    """One unit of asynchronous generation work.

    Records are never mutated in place; the registry swaps in a fresh copy on
    every committed transition, so a reference handed out is a stable snapshot.
    """

    id: str
    type: MediaType
    status: TaskStatus = "pending"
    progress: int | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
    result: GenerationEnvelope | None = None
    error: str | None = None
    metadata: TaskMetadata = Field(default_factory=TaskMetadata)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class TaskStats(BaseModel):
    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a compare-and-set transition.

    ``applied`` is False when the record does not exist or the requested move
    is not allowed from its current status (a stale or racing update).
    """

    applied: bool
    record: TaskRecord | None
    reason: TransitionReason | None = None
