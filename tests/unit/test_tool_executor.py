import asyncio
import time

from media_orchestrator.registry.memory import InMemoryTaskRegistry
from media_orchestrator.tools.gateway import RegistryToolExecutor
from media_orchestrator.tools.registry import ToolSpec, build_registry, tool_definitions
from media_orchestrator.tools.schemas import GetTaskStatusInput, GetTaskStatusOutput


def _executor(**kwargs) -> tuple[RegistryToolExecutor, InMemoryTaskRegistry]:
    registry = InMemoryTaskRegistry()
    return RegistryToolExecutor(registry=build_registry(registry), **kwargs), registry


def test_tool_executor_success_validates_schema(video_envelope) -> None:
    executor, registry = _executor()
    record = registry.create("video", {"prompt": "waves"})
    registry.transition(record.id, "processing")
    registry.transition(record.id, "completed", result=video_envelope)

    outcome = asyncio.run(executor.execute("get_task_status", {"task_id": record.id}))

    assert outcome.success
    assert outcome.result["found"] is True
    assert outcome.result["task"]["status"] == "completed"
    assert "data" not in outcome.result["task"]["result"]
    assert outcome.attempts == 1
    assert outcome.duration_ms >= 0


def test_task_stats_tool_reports_registry_counts() -> None:
    executor, registry = _executor()
    registry.create("video")

    outcome = asyncio.run(executor.execute("task_stats", {}))

    assert outcome.result == {"total": 1, "pending": 1, "processing": 0, "completed": 0, "failed": 0}


def test_list_models_tool_filters_by_media_type() -> None:
    executor, _ = _executor()

    outcome = asyncio.run(executor.execute("list_models", {"media_type": "video"}))

    assert [model["id"] for model in outcome.result["models"]] == ["cogvideox-3"]
    assert outcome.result["models"][0]["is_default"] is True


def test_unknown_tool_fails_without_retry() -> None:
    executor, _ = _executor(max_retries=2)

    outcome = asyncio.run(executor.execute("rm_rf", {}))

    assert not outcome.success
    assert outcome.error == "Unknown tool: rm_rf"
    assert outcome.attempts == 1
    assert outcome.payload() == {"error": "Unknown tool: rm_rf"}


def test_invalid_arguments_are_rejected() -> None:
    executor, _ = _executor()

    outcome = asyncio.run(executor.execute("get_task_status", {"task_id": "x", "extra": True}))

    assert not outcome.success
    assert "Invalid arguments" in outcome.error


def test_tool_executor_timeout_and_retry() -> None:
    def slow_lookup(_: GetTaskStatusInput) -> GetTaskStatusOutput:
        time.sleep(0.2)
        return GetTaskStatusOutput(found=False)

    registry = {
        "slow_tool": ToolSpec(
            input_model=GetTaskStatusInput,
            output_model=GetTaskStatusOutput,
            fn=slow_lookup,
        )
    }
    executor = RegistryToolExecutor(
        registry=registry, tool_timeout_s=0.01, max_retries=1, backoff_s=0.0
    )

    outcome = asyncio.run(executor.execute("slow_tool", {"task_id": "t1"}))

    assert not outcome.success
    assert outcome.attempts == 2
    assert "timed out" in outcome.error


def test_async_tool_errors_become_unsuccessful_outcomes() -> None:
    async def broken(_: GetTaskStatusInput) -> GetTaskStatusOutput:
        raise RuntimeError("disk on fire")

    registry = {
        "broken": ToolSpec(
            input_model=GetTaskStatusInput, output_model=GetTaskStatusOutput, fn=broken
        )
    }
    executor = RegistryToolExecutor(registry=registry)

    outcome = asyncio.run(executor.execute("broken", {"task_id": "t1"}))

    assert not outcome.success
    assert outcome.error == "disk on fire"


def test_tool_definitions_describe_input_schema() -> None:
    definitions = tool_definitions(build_registry(InMemoryTaskRegistry()))

    names = [definition["function"]["name"] for definition in definitions]
    assert names == ["get_task_status", "list_models", "task_stats"]
    status_schema = definitions[0]["function"]["parameters"]
    assert status_schema["required"] == ["task_id"]
    assert definitions[2]["function"]["parameters"]["properties"] == {}
