"""Strict Pydantic schemas for built-in tool inputs and outputs."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class StrictModel(BaseModel):
    """Base model for strict schema validation."""

    model_config = ConfigDict(extra="forbid")


class GetTaskStatusInput(StrictModel):
    task_id: str = Field(min_length=1, description="Id returned by a task-created event.")


class GetTaskStatusOutput(StrictModel):
    found: bool
    task: dict[str, Any] | None = None


class TaskStatsInput(StrictModel):
    pass


class TaskStatsOutput(StrictModel):
    total: int
    pending: int
    processing: int
    completed: int
    failed: int


class ListModelsInput(StrictModel):
    media_type: Literal["image", "audio", "video"] | None = Field(
        default=None, description="Restrict the listing to one modality."
    )


class ModelSummary(StrictModel):
    id: str
    name: str
    provider: str
    type: str
    async_polling: bool
    is_default: bool


class ListModelsOutput(StrictModel):
    models: list[ModelSummary]
