"""Registry of built-in tools exposed to the chat model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel

from media_orchestrator.generators.catalog import MODEL_CATALOG, ProviderRouter
from media_orchestrator.registry.base import TaskRegistry
from media_orchestrator.tools.schemas import (
    GetTaskStatusInput,
    GetTaskStatusOutput,
    ListModelsInput,
    ListModelsOutput,
    ModelSummary,
    TaskStatsInput,
    TaskStatsOutput,
)


@dataclass(frozen=True)
class ToolSpec:
    input_model: type[BaseModel]
    output_model: type[BaseModel]
    fn: Callable[[Any], Any]
    description: str = ""


def build_registry(
    task_registry: TaskRegistry, *, router: ProviderRouter | None = None
) -> dict[str, ToolSpec]:
    model_router = router or ProviderRouter()

    def get_task_status(payload: GetTaskStatusInput) -> GetTaskStatusOutput:
        record = task_registry.get(payload.task_id)
        if record is None:
            return GetTaskStatusOutput(found=False)
        task = record.to_wire()
        # Inline media can be megabytes of base64; the model only needs the outcome.
        if isinstance(task.get("result"), dict):
            task["result"].pop("data", None)
        return GetTaskStatusOutput(found=True, task=task)

    def task_stats(_: TaskStatsInput) -> TaskStatsOutput:
        return TaskStatsOutput(**task_registry.stats().model_dump())

    def list_models(payload: ListModelsInput) -> ListModelsOutput:
        models = [
            ModelSummary(
                id=model.id,
                name=model.name,
                provider=model.provider,
                type=model.media_type,
                async_polling=model.async_polling,
                is_default=model_router.default_for(model.media_type) == model.id,
            )
            for model in MODEL_CATALOG
            if payload.media_type is None or model.media_type == payload.media_type
        ]
        return ListModelsOutput(models=models)

    return {
        "get_task_status": ToolSpec(
            input_model=GetTaskStatusInput,
            output_model=GetTaskStatusOutput,
            fn=get_task_status,
            description="Look up the lifecycle record of a generation task by id.",
        ),
        "task_stats": ToolSpec(
            input_model=TaskStatsInput,
            output_model=TaskStatsOutput,
            fn=task_stats,
            description="Count generation tasks by status.",
        ),
        "list_models": ToolSpec(
            input_model=ListModelsInput,
            output_model=ListModelsOutput,
            fn=list_models,
            description="List the image, audio and video generation models available.",
        ),
    }


def list_tools(registry: dict[str, ToolSpec]) -> list[str]:
    return sorted(registry.keys())


def tool_definitions(registry: dict[str, ToolSpec]) -> list[dict[str, Any]]:
    """Render the registry as OpenAI-style function definitions."""
    definitions: list[dict[str, Any]] = []
    for name in list_tools(registry):
        spec = registry[name]
        parameters = spec.input_model.model_json_schema()
        parameters.pop("title", None)
        parameters.setdefault("properties", {})
        definitions.append(
            {
                "type": "function",
                "function": {
                    "name": name,
                    "description": spec.description,
                    "parameters": parameters,
                },
            }
        )
    return definitions
