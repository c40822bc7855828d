"""Server-Sent-Events framing shared by every streaming endpoint."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import Request
from fastapi.responses import StreamingResponse

from media_orchestrator.streaming.events import ErrorEvent, StreamEvent

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def encode_event(event: StreamEvent) -> str:
    return f"data: {json.dumps(event.to_wire(), separators=(',', ':'))}\n\n"


async def frame_events(
    events: AsyncIterator[StreamEvent],
    *,
    request: Request | None = None,
    stream_name: str = "stream",
) -> AsyncIterator[str]:
    """Encode ``events`` as SSE frames, ending at the first terminal event.

    A producer that stops without a terminal event, or raises, is closed off
    with a single ``error`` event. When the client has gone away the producer
    is closed, which cancels whatever it was awaiting.
    """
    terminated = False
    try:
        async for event in events:
            if request is not None and await request.is_disconnected():
                logger.info("stream event=client_disconnected stream=%s", stream_name)
                return
            yield encode_event(event)
            if event.terminal:
                terminated = True
                return
    except Exception as exc:  # noqa: BLE001 - converted into the stream's terminal error
        logger.exception("stream event=producer_failed stream=%s", stream_name)
        terminated = True
        yield encode_event(ErrorEvent(error=str(exc) or exc.__class__.__name__))
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()
    if not terminated:
        logger.warning("stream event=ended_without_terminal stream=%s", stream_name)
        yield encode_event(ErrorEvent(error="Stream ended unexpectedly"))


def event_stream_response(
    events: AsyncIterator[StreamEvent],
    *,
    request: Request | None = None,
    stream_name: str = "stream",
) -> StreamingResponse:
    return StreamingResponse(
        frame_events(events, request=request, stream_name=stream_name),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


class SSEDecoder:
    """Incremental parser for ``data: <json>\\n\\n`` frames.

    Chunks may split a frame anywhere; partial frames are buffered until the
    blank-line delimiter arrives.
    """

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, chunk: str | bytes) -> list[dict[str, Any]]:
        if isinstance(chunk, bytes):
            chunk = chunk.decode("utf-8")
        self._buffer += chunk.replace("\r\n", "\n")
        events: list[dict[str, Any]] = []
        while "\n\n" in self._buffer:
            frame, self._buffer = self._buffer.split("\n\n", 1)
            payload = "\n".join(
                line[5:].lstrip() for line in frame.split("\n") if line.startswith("data:")
            )
            if not payload:
                continue
            events.append(json.loads(payload))
        return events

    @property
    def pending(self) -> str:
        return self._buffer


def decode_stream(body: str | bytes) -> list[dict[str, Any]]:
    decoder = SSEDecoder()
    return decoder.feed(body)
