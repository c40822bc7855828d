"""Route classified requests to generators and drive long-running video tasks."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable
from typing import Any

from media_orchestrator.chat.loop import ToolCallLoopController
from media_orchestrator.errors import ProviderError, ProviderTimeoutError
from media_orchestrator.generators import GeneratorSet
from media_orchestrator.generators.base import (
    AsyncHandle,
    GenerationEnvelope,
    GenerationOptions,
    MediaType,
)
from media_orchestrator.intent.classifier import (
    INTENT_LABELS,
    ClassificationResult,
    classify,
)
from media_orchestrator.registry.base import TaskRegistry
from media_orchestrator.streaming.events import (
    ClarificationEvent,
    CompleteEvent,
    ErrorEvent,
    IntentEvent,
    PollingEvent,
    ProgressEvent,
    StreamEvent,
    TaskCreatedEvent,
)

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_TEMPLATE = (
    "It sounds like you may want {label}, but I'm not certain. Could you rephrase? "
    "For example: 'generate an image of a sunset', 'say hello world' or "
    "'make a video of waves on a beach'."
)
CHAT_ON_GENERATION_STREAM = (
    "That looks like a question for the assistant rather than a media request. "
    "Ask me to generate an image, audio or a video, or use the chat stream."
)
VALID_DURATIONS = (5, 10)


def task_stream_url(task_id: str) -> str:
    return f"/api/tasks/{task_id}/stream"


class GenerationDispatcher:
    """Compose classifier, generator adapters and task registry for one request.

    Image and audio requests complete inline on the request's stream. Video
    requests create a task record, hand the client a task id, and leave the
    rest to a background poller that outlives the request.
    """

    def __init__(
        self,
        *,
        registry: TaskRegistry,
        generators: GeneratorSet,
        chat: ToolCallLoopController | None = None,
        confidence_threshold: float = 0.9,
        provider_timeout_s: float = 120.0,
        video_poll_interval_s: float = 3.0,
        video_timeout_s: float = 600.0,
        classifier: Callable[[str], ClassificationResult] = classify,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.generators = generators
        self.chat = chat
        self.confidence_threshold = confidence_threshold
        self.provider_timeout_s = provider_timeout_s
        self.video_poll_interval_s = video_poll_interval_s
        self.video_timeout_s = video_timeout_s
        self._classify = classifier
        self._clock = clock
        self._pollers: set[asyncio.Task[None]] = set()

    @property
    def active_pollers(self) -> int:
        return sum(1 for task in self._pollers if not task.done())

    async def dispatch(
        self,
        message: str,
        *,
        options: GenerationOptions | None = None,
        session_id: str | None = None,
        allow_chat: bool = True,
    ) -> AsyncIterator[StreamEvent]:
        classification = self._classify(message)
        logger.info(
            "dispatch event=classified intent=%s confidence=%.2f",
            classification.intent,
            classification.confidence,
        )
        yield IntentEvent(intent=classification.intent, confidence=classification.confidence)

        if (
            classification.intent == "unclear"
            or classification.confidence < self.confidence_threshold
        ):
            yield ClarificationEvent(message=_clarification_message(classification))
            return

        if classification.intent == "chat":
            if not allow_chat:
                yield ClarificationEvent(message=CHAT_ON_GENERATION_STREAM)
                return
            if self.chat is None:
                yield ErrorEvent(error="Chat model is not configured")
                return
            async for event in self.chat.run(message, session_id=session_id):
                yield event
            return

        media_type: MediaType = classification.intent.removeprefix("generate-")  # type: ignore[assignment]
        request_options = _merge_options(options, classification.parameters)
        prompt = _prompt_for(classification, message)

        if media_type == "video":
            async for event in self._dispatch_video(prompt, request_options):
                yield event
            return

        yield ProgressEvent(stage="generating")
        try:
            envelope = await asyncio.wait_for(
                self.generators.for_type(media_type).generate(prompt, request_options),
                timeout=self.provider_timeout_s,
            )
        except asyncio.TimeoutError:
            error = f"{media_type.capitalize()} generation timed out after {self.provider_timeout_s:.0f}s"
            logger.warning("dispatch event=generation_timeout type=%s", media_type)
            yield ErrorEvent(error=error)
            return
        except ProviderError as exc:
            logger.warning("dispatch event=generation_failed type=%s error=%s", media_type, exc)
            yield ErrorEvent(error=str(exc))
            return

        if not isinstance(envelope, GenerationEnvelope):
            yield ErrorEvent(error=f"{media_type.capitalize()} generator returned no media")
            return
        yield CompleteEvent(media=envelope)

    async def _dispatch_video(
        self, prompt: str, options: GenerationOptions
    ) -> AsyncIterator[StreamEvent]:
        record = self.registry.create("video", {"prompt": prompt, "model": options.model})
        try:
            handle = await asyncio.wait_for(
                self.generators.video.generate(prompt, options), timeout=self.provider_timeout_s
            )
        except asyncio.TimeoutError:
            error = f"Video submission timed out after {self.provider_timeout_s:.0f}s"
            self.registry.transition(record.id, "failed", error=error)
            yield ErrorEvent(error=error)
            return
        except ProviderError as exc:
            self.registry.transition(record.id, "failed", error=str(exc))
            yield ErrorEvent(error=str(exc))
            return
        except asyncio.CancelledError:
            self.registry.transition(
                record.id, "failed", error="Request cancelled before the task started"
            )
            raise
        except Exception as exc:  # noqa: BLE001 - the created record must not stay pending
            logger.exception("dispatch event=submission_crashed task_id=%s", record.id)
            error = str(exc) or exc.__class__.__name__
            self.registry.transition(record.id, "failed", error=error)
            yield ErrorEvent(error=error)
            return

        if not isinstance(handle, AsyncHandle):
            error = "Video generator did not return a task handle"
            self.registry.transition(record.id, "failed", error=error)
            yield ErrorEvent(error=error)
            return

        self.registry.transition(
            record.id, "processing", progress=0, external_id=handle.external_id
        )
        self._start_poller(record.id, handle)
        yield TaskCreatedEvent(task_id=record.id)
        yield PollingEvent(
            task_id=record.id,
            url=task_stream_url(record.id),
            interval_ms=int(self.video_poll_interval_s * 1000),
        )

    def _start_poller(self, task_id: str, handle: AsyncHandle) -> None:
        task = asyncio.create_task(
            self._poll_video(task_id, handle), name=f"video-poller-{task_id}"
        )
        self._pollers.add(task)
        task.add_done_callback(self._pollers.discard)
        logger.info(
            "dispatch event=poller_started task_id=%s external_id=%s",
            task_id,
            handle.external_id,
        )

    async def _poll_video(self, task_id: str, handle: AsyncHandle) -> None:
        started_at = self._clock()
        deadline = started_at + self.video_timeout_s
        try:
            while True:
                await asyncio.sleep(self.video_poll_interval_s)
                now = self._clock()
                if now >= deadline:
                    self.registry.transition(
                        task_id,
                        "failed",
                        error=f"Video generation timed out after {self.video_timeout_s:.0f}s",
                    )
                    return

                try:
                    status = await asyncio.wait_for(
                        self.generators.video.poll(handle),
                        timeout=min(self.provider_timeout_s, deadline - now),
                    )
                except (asyncio.TimeoutError, ProviderTimeoutError):
                    logger.warning("dispatch event=poll_timeout task_id=%s", task_id)
                    continue
                except ProviderError as exc:
                    self.registry.transition(task_id, "failed", error=str(exc))
                    return

                elapsed_s = self._clock() - started_at
                if status.state == "succeeded" and status.envelope is not None:
                    self.registry.transition(
                        task_id, "completed", result=_with_generation_time(status.envelope, elapsed_s)
                    )
                    return
                if status.state != "processing":
                    self.registry.transition(
                        task_id, "failed", error=status.error or "Video generation failed"
                    )
                    return

                progress = (
                    status.progress
                    if status.progress is not None
                    else _estimated_progress(elapsed_s, handle.estimated_time_s)
                )
                outcome = self.registry.transition(task_id, "processing", progress=min(progress, 99))
                if not outcome.applied:
                    # Evicted or already terminal; nothing left to drive.
                    return
        except asyncio.CancelledError:
            logger.info("dispatch event=poller_cancelled task_id=%s", task_id)
            raise
        except Exception as exc:  # noqa: BLE001 - a crashed poller must still settle its task
            logger.exception("dispatch event=poller_crashed task_id=%s", task_id)
            self.registry.transition(task_id, "failed", error=f"Video polling failed: {exc}")

    async def shutdown(self) -> None:
        pending = [task for task in self._pollers if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info("dispatch event=pollers_cancelled count=%d", len(pending))


def _clarification_message(classification: ClassificationResult) -> str:
    if classification.clarifying_question:
        return classification.clarifying_question
    label = INTENT_LABELS.get(classification.intent, "something")
    return LOW_CONFIDENCE_TEMPLATE.format(label=label)


def _merge_options(
    options: GenerationOptions | None, parameters: dict[str, Any]
) -> GenerationOptions:
    merged = options.model_copy() if options is not None else GenerationOptions()
    duration = parameters.get("duration")
    if merged.duration is None and duration in VALID_DURATIONS:
        merged = merged.model_copy(update={"duration": duration})
    voice = parameters.get("voice_id")
    if merged.voice is None and isinstance(voice, str) and voice:
        merged = merged.model_copy(update={"voice": voice})
    return merged


def _prompt_for(classification: ClassificationResult, message: str) -> str:
    parameters = classification.parameters
    for key in ("prompt", "text"):
        value = parameters.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return message.strip()


def _estimated_progress(elapsed_s: float, estimated_time_s: float) -> int:
    if estimated_time_s <= 0:
        return 99
    return max(0, min(99, int(elapsed_s / estimated_time_s * 100)))


def _with_generation_time(envelope: GenerationEnvelope, elapsed_s: float) -> GenerationEnvelope:
    if envelope.metadata.generation_time_ms is not None:
        return envelope
    metadata = envelope.metadata.model_copy(
        update={"generation_time_ms": int(round(elapsed_s * 1000))}
    )
    return envelope.model_copy(update={"metadata": metadata})
