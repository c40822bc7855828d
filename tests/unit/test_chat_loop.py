import asyncio

from media_orchestrator.chat.loop import ToolCallLoopController
from media_orchestrator.chat.model import ModelTurn, ToolCall
from media_orchestrator.chat.sessions import InMemorySessionStore
from media_orchestrator.errors import ChatModelError
from media_orchestrator.registry.memory import InMemoryTaskRegistry
from media_orchestrator.streaming.events import Usage
from media_orchestrator.tools.gateway import RegistryToolExecutor, ToolOutcome
from media_orchestrator.tools.registry import build_registry


class RecordingExecutor:
    """Executor double that logs start/finish so sequencing can be asserted."""

    def __init__(self) -> None:
        self.log: list[str] = []

    def definitions(self) -> list[dict]:
        return [{"type": "function", "function": {"name": "read_file", "parameters": {}}}]

    def names(self) -> list[str]:
        return ["read_file"]

    async def execute(self, tool: str, args: dict) -> ToolOutcome:
        self.log.append(f"start:{args['path']}")
        await asyncio.sleep(0.01)
        self.log.append(f"end:{args['path']}")
        if args["path"] == "missing.txt":
            return ToolOutcome(success=False, error="file not found")
        return ToolOutcome(success=True, result={"content": f"contents of {args['path']}"})


def _run(controller: ToolCallLoopController, message: str, **kwargs) -> list:
    async def collect() -> list:
        return [event async for event in controller.run(message, **kwargs)]

    return asyncio.run(collect())


def test_two_tool_calls_run_sequentially_in_order(chat_model) -> None:
    chat_model.turns = [
        ModelTurn(
            content="Let me look.",
            tool_calls=[
                ToolCall(id="c1", name="read_file", arguments={"path": "a.txt"}),
                ToolCall(id="c2", name="read_file", arguments={"path": "b.txt"}),
            ],
            usage=Usage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        ),
        ModelTurn(
            content="Both files are short.",
            usage=Usage(prompt_tokens=20, completion_tokens=4, total_tokens=24),
            finish_reason="stop",
        ),
    ]
    executor = RecordingExecutor()
    controller = ToolCallLoopController(
        model=chat_model, sessions=InMemorySessionStore(), executor=executor
    )

    events = _run(controller, "read a.txt and b.txt", session_id="s-1")

    assert [(event.type, getattr(event, "id", None)) for event in events] == [
        ("text", None),
        ("tool_call", "c1"),
        ("tool_result", "c1"),
        ("tool_call", "c2"),
        ("tool_result", "c2"),
        ("text", None),
        ("done", None),
    ]
    assert executor.log == ["start:a.txt", "end:a.txt", "start:b.txt", "end:b.txt"]
    done = events[-1]
    assert done.session_id == "s-1"
    assert done.usage.total_tokens == 39
    assert done.usage.rounds == 2


def test_tool_results_are_fed_back_to_the_model(chat_model) -> None:
    chat_model.turns = [
        ModelTurn(tool_calls=[ToolCall(id="c1", name="read_file", arguments={"path": "a.txt"})]),
        ModelTurn(content="done"),
    ]
    controller = ToolCallLoopController(
        model=chat_model, sessions=InMemorySessionStore(), executor=RecordingExecutor()
    )

    _run(controller, "read a.txt")

    second_request = chat_model.requests[1]["messages"]
    assert second_request[-2]["role"] == "assistant"
    assert second_request[-2]["tool_calls"][0]["id"] == "c1"
    assert second_request[-1] == {
        "role": "tool",
        "tool_call_id": "c1",
        "content": '{"content": "contents of a.txt"}',
    }
    assert chat_model.requests[0]["tools"][0]["function"]["name"] == "read_file"


def test_failed_tool_is_reported_and_loop_continues(chat_model) -> None:
    chat_model.turns = [
        ModelTurn(
            tool_calls=[ToolCall(id="c1", name="read_file", arguments={"path": "missing.txt"})]
        ),
        ModelTurn(content="That file does not exist."),
    ]
    controller = ToolCallLoopController(
        model=chat_model, sessions=InMemorySessionStore(), executor=RecordingExecutor()
    )

    events = _run(controller, "read missing.txt")

    result = next(event for event in events if event.type == "tool_result")
    assert result.success is False
    assert result.result == {"error": "file not found"}
    assert events[-1].type == "done"


def test_unparseable_arguments_fail_without_executing(chat_model) -> None:
    chat_model.turns = [
        ModelTurn(tool_calls=[ToolCall(id="c1", name="read_file", parse_error="Invalid tool arguments JSON")]),
        ModelTurn(content="ok"),
    ]
    executor = RecordingExecutor()
    controller = ToolCallLoopController(
        model=chat_model, sessions=InMemorySessionStore(), executor=executor
    )

    events = _run(controller, "read something")

    assert executor.log == []
    assert events[1].type == "tool_result" and events[1].success is False


def test_model_failure_terminates_with_error(chat_model) -> None:
    chat_model.turns = [
        ModelTurn(tool_calls=[ToolCall(id="c1", name="read_file", arguments={"path": "a.txt"})]),
        ChatModelError("upstream 503"),
    ]
    controller = ToolCallLoopController(
        model=chat_model, sessions=InMemorySessionStore(), executor=RecordingExecutor()
    )

    events = _run(controller, "read a.txt")

    assert [event.type for event in events] == ["tool_call", "tool_result", "error"]
    assert events[-1].error == "upstream 503"


def test_max_rounds_bounds_the_turn(chat_model) -> None:
    chat_model.turns = [
        ModelTurn(tool_calls=[ToolCall(id=f"c{i}", name="read_file", arguments={"path": "a.txt"})])
        for i in range(5)
    ]
    controller = ToolCallLoopController(
        model=chat_model, sessions=InMemorySessionStore(), executor=RecordingExecutor(), max_rounds=3
    )

    events = _run(controller, "loop forever")

    assert sum(1 for event in events if event.type == "tool_call") == 3
    assert events[-1].type == "done"
    assert events[-1].usage.rounds == 3


def test_session_history_is_loaded_and_extended(chat_model) -> None:
    sessions = InMemorySessionStore()
    sessions.append("s-9", "user", "earlier question")
    sessions.append("s-9", "assistant", "earlier answer")
    chat_model.turns = [ModelTurn(content="new answer")]
    controller = ToolCallLoopController(model=chat_model, sessions=sessions)

    _run(controller, "new question", session_id="s-9")

    sent = chat_model.requests[0]["messages"]
    assert [m["role"] for m in sent] == ["system", "user", "assistant", "user"]
    assert sessions.history("s-9")[-2:] == [
        {"role": "user", "content": "new question"},
        {"role": "assistant", "content": "new answer"},
    ]


def test_built_in_tools_work_through_the_loop(chat_model) -> None:
    registry = InMemoryTaskRegistry()
    registry.create("video")
    chat_model.turns = [
        ModelTurn(tool_calls=[ToolCall(id="c1", name="task_stats")]),
        ModelTurn(content="You have one pending task."),
    ]
    controller = ToolCallLoopController(
        model=chat_model,
        sessions=InMemorySessionStore(),
        executor=RegistryToolExecutor(registry=build_registry(registry)),
    )

    events = _run(controller, "how many tasks are pending?")

    assert events[1].result["pending"] == 1
    assert events[1].success is True


def test_session_store_trims_old_messages() -> None:
    sessions = InMemorySessionStore(max_messages=3)
    for index in range(5):
        sessions.append("s", "user", f"m{index}")

    assert [m["content"] for m in sessions.history("s")] == ["m2", "m3", "m4"]
