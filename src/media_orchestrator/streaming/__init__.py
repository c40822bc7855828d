"""Stream event models and SSE framing."""

from media_orchestrator.streaming.events import (
    ChatEvent,
    ClarificationEvent,
    CompleteEvent,
    DoneEvent,
    ErrorEvent,
    GenerationEvent,
    IntentEvent,
    PollingEvent,
    ProgressEvent,
    StreamEvent,
    TaskCompleteEvent,
    TaskCreatedEvent,
    TaskEvent,
    TaskInitEvent,
    TaskProgressEvent,
    TextEvent,
    ToolCallEvent,
    ToolResultEvent,
    Usage,
    task_event_for,
)
from media_orchestrator.streaming.sse import (
    SSE_HEADERS,
    SSEDecoder,
    decode_stream,
    encode_event,
    event_stream_response,
    frame_events,
)

__all__ = [
    "ChatEvent",
    "ClarificationEvent",
    "CompleteEvent",
    "DoneEvent",
    "ErrorEvent",
    "GenerationEvent",
    "IntentEvent",
    "PollingEvent",
    "ProgressEvent",
    "SSEDecoder",
    "SSE_HEADERS",
    "StreamEvent",
    "TaskCompleteEvent",
    "TaskCreatedEvent",
    "TaskEvent",
    "TaskInitEvent",
    "TaskProgressEvent",
    "TextEvent",
    "ToolCallEvent",
    "ToolResultEvent",
    "Usage",
    "decode_stream",
    "encode_event",
    "event_stream_response",
    "frame_events",
    "task_event_for",
]
