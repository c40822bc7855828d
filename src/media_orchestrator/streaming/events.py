"""Typed events for the chat-turn, generation and task streams.

Each stream carries a closed union discriminated on ``type``. An event class
marks itself terminal with the ``terminal`` class flag; a stream writer stops
after the first terminal event it emits.
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import Field, TypeAdapter

from media_orchestrator.generators.base import GenerationEnvelope, WireModel
from media_orchestrator.registry.models import TaskRecord, TaskStatus


class StreamEvent(WireModel):
    terminal: ClassVar[bool] = False


class ErrorEvent(StreamEvent):
    terminal: ClassVar[bool] = True

    type: Literal["error"] = "error"
    error: str


# Chat-turn stream


class Usage(WireModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    rounds: int = 0

    def add(self, other: Usage) -> None:
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens
        self.total_tokens += other.total_tokens


class TextEvent(StreamEvent):
    type: Literal["text"] = "text"
    content: str


class ToolCallEvent(StreamEvent):
    type: Literal["tool_call"] = "tool_call"
    tool: str
    args: dict[str, Any] = Field(default_factory=dict)
    id: str


class ToolResultEvent(StreamEvent):
    type: Literal["tool_result"] = "tool_result"
    tool: str
    id: str
    result: Any = None
    success: bool


class DoneEvent(StreamEvent):
    terminal: ClassVar[bool] = True

    type: Literal["done"] = "done"
    usage: Usage = Field(default_factory=Usage)
    session_id: str


ChatEvent = Annotated[
    Union[TextEvent, ToolCallEvent, ToolResultEvent, DoneEvent, ErrorEvent],
    Field(discriminator="type"),
]


# Generation stream


class IntentEvent(StreamEvent):
    type: Literal["intent"] = "intent"
    intent: str
    confidence: float


class ProgressEvent(StreamEvent):
    type: Literal["progress"] = "progress"
    stage: str
    progress: int | None = None
    message: str | None = None


class CompleteEvent(StreamEvent):
    terminal: ClassVar[bool] = True

    type: Literal["complete"] = "complete"
    media: GenerationEnvelope


class TaskCreatedEvent(StreamEvent):
    type: Literal["task-created"] = "task-created"
    task_id: str


class PollingEvent(StreamEvent):
    """Last event of a video request: where to follow the task from here."""

    terminal: ClassVar[bool] = True

    type: Literal["polling"] = "polling"
    task_id: str
    url: str
    interval_ms: int


class ClarificationEvent(StreamEvent):
    terminal: ClassVar[bool] = True

    type: Literal["clarification"] = "clarification"
    message: str


GenerationEvent = Annotated[
    Union[
        IntentEvent,
        ProgressEvent,
        CompleteEvent,
        TaskCreatedEvent,
        PollingEvent,
        ClarificationEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]


# Task stream


class TaskInitEvent(StreamEvent):
    type: Literal["init"] = "init"
    task: TaskRecord


class TaskProgressEvent(StreamEvent):
    type: Literal["progress"] = "progress"
    status: TaskStatus
    progress: int | None = None


class TaskCompleteEvent(StreamEvent):
    terminal: ClassVar[bool] = True

    type: Literal["complete"] = "complete"
    result: GenerationEnvelope


TaskEvent = Annotated[
    Union[TaskInitEvent, TaskProgressEvent, TaskCompleteEvent, ErrorEvent],
    Field(discriminator="type"),
]

chat_event_adapter: TypeAdapter[Any] = TypeAdapter(ChatEvent)
generation_event_adapter: TypeAdapter[Any] = TypeAdapter(GenerationEvent)
task_event_adapter: TypeAdapter[Any] = TypeAdapter(TaskEvent)


def task_event_for(record: TaskRecord) -> StreamEvent:
    """Map a committed registry snapshot onto the task-stream event it implies."""
    if record.status == "completed" and record.result is not None:
        return TaskCompleteEvent(result=record.result)
    if record.status == "failed":
        return ErrorEvent(error=record.error or "Task failed")
    return TaskProgressEvent(status=record.status, progress=record.progress)
