"""FastAPI app entrypoint for media-orchestrator."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from typing import Any

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import Field

from media_orchestrator.chat.loop import ToolCallLoopController
from media_orchestrator.chat.model import ChatModel, build_chat_model
from media_orchestrator.chat.sessions import InMemorySessionStore, SessionStore
from media_orchestrator.config.settings import Settings, get_settings
from media_orchestrator.dispatch.dispatcher import GenerationDispatcher
from media_orchestrator.errors import ConfigurationError, ProviderError, TaskNotFoundError
from media_orchestrator.generators import GeneratorSet, build_generators
from media_orchestrator.generators.base import GenerationOptions, MediaType, WireModel
from media_orchestrator.generators.catalog import MODEL_CATALOG, ProviderRouter
from media_orchestrator.registry.base import TaskRegistry
from media_orchestrator.registry.memory import InMemoryTaskRegistry, TaskSubscription
from media_orchestrator.registry.models import TaskStatus
from media_orchestrator.streaming.events import StreamEvent, TaskInitEvent, task_event_for
from media_orchestrator.streaming.sse import event_stream_response
from media_orchestrator.tools.gateway import RegistryToolExecutor, ToolExecutor
from media_orchestrator.tools.registry import build_registry

logger = logging.getLogger(__name__)


class MessageRequest(WireModel):
    message: str = Field(min_length=1)
    session_id: str | None = None
    options: GenerationOptions | None = None


class GenerateRequest(WireModel):
    message: str = Field(min_length=1)
    options: GenerationOptions | None = None


class ChatRequest(WireModel):
    message: str = Field(min_length=1)
    session_id: str | None = None
    enable_tools: bool = True


def create_app(
    *,
    settings_override: Settings | None = None,
    registry: TaskRegistry | None = None,
    generators: GeneratorSet | None = None,
    chat_model: ChatModel | None = None,
    tool_executor: ToolExecutor | None = None,
    session_store: SessionStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    router = ProviderRouter()
    task_registry = registry or InMemoryTaskRegistry(
        ttl_s=settings.task_ttl_s, max_records=settings.task_max_records
    )
    generator_set = generators or build_generators(settings, router=router, transport=transport)
    model = chat_model or build_chat_model(settings, transport=transport)
    executor = tool_executor or RegistryToolExecutor(
        registry=build_registry(task_registry, router=router),
        tool_timeout_s=settings.tool_timeout_s,
    )
    sessions = session_store or InMemorySessionStore()
    chat = (
        ToolCallLoopController(
            model=model,
            sessions=sessions,
            executor=executor,
            max_rounds=settings.chat_max_rounds,
            tool_timeout_s=settings.tool_timeout_s,
        )
        if model is not None
        else None
    )
    dispatcher = GenerationDispatcher(
        registry=task_registry,
        generators=generator_set,
        chat=chat,
        confidence_threshold=settings.confidence_threshold,
        provider_timeout_s=settings.provider_timeout_s,
        video_poll_interval_s=settings.video_poll_interval_s,
        video_timeout_s=settings.video_timeout_s,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = asyncio.create_task(
            _sweep_expired(task_registry, settings.cleanup_interval_s), name="task-sweeper"
        )
        try:
            yield
        finally:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper
            await dispatcher.shutdown()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = task_registry
    app.state.generators = generator_set
    app.state.dispatcher = dispatcher
    app.state.chat = chat
    app.state.tool_executor = executor
    app.state.router = router

    @app.exception_handler(TaskNotFoundError)
    async def task_not_found(_: Request, exc: TaskNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": "Task not found"})

    @app.exception_handler(ConfigurationError)
    async def configuration_error(_: Request, exc: ConfigurationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "service": settings.app_name,
            "activePollers": dispatcher.active_pollers,
        }

    @app.post("/api/messages/stream")
    async def message_stream(payload: MessageRequest, request: Request) -> StreamingResponse:
        events = dispatcher.dispatch(
            payload.message, options=payload.options, session_id=payload.session_id
        )
        return event_stream_response(events, request=request, stream_name="messages")

    @app.post("/api/generate/stream")
    async def generate_stream(payload: GenerateRequest, request: Request) -> StreamingResponse:
        events = dispatcher.dispatch(payload.message, options=payload.options, allow_chat=False)
        return event_stream_response(events, request=request, stream_name="generate")

    @app.post("/api/chat/stream")
    async def chat_stream(payload: ChatRequest, request: Request) -> StreamingResponse:
        if chat is None:
            raise ConfigurationError("Chat model is not configured")
        events = chat.run(
            payload.message, session_id=payload.session_id, enable_tools=payload.enable_tools
        )
        return event_stream_response(events, request=request, stream_name="chat")

    @app.get("/api/tasks/stats")
    def task_stats() -> dict[str, int]:
        return task_registry.stats().model_dump()

    @app.get("/api/tasks")
    def list_tasks(
        status: TaskStatus | None = None,
        task_type: MediaType | None = Query(default=None, alias="type"),
    ) -> dict[str, list[dict[str, Any]]]:
        records = task_registry.list_tasks(status=status, task_type=task_type)
        return {"tasks": [record.to_wire() for record in records]}

    @app.get("/api/tasks/{task_id}")
    def get_task(task_id: str) -> dict[str, Any]:
        record = task_registry.get(task_id)
        if record is None:
            raise TaskNotFoundError(task_id)
        return record.to_wire()

    @app.get("/api/tasks/{task_id}/stream")
    async def task_stream(task_id: str, request: Request) -> StreamingResponse:
        subscription = task_registry.subscribe(task_id)
        if subscription is None:
            raise TaskNotFoundError(task_id)
        return event_stream_response(
            _task_events(subscription), request=request, stream_name="task"
        )

    @app.get("/api/models")
    def list_models(
        media_type: MediaType | None = Query(default=None, alias="type"),
    ) -> dict[str, list[dict[str, Any]]]:
        models = []
        for model_capability in MODEL_CATALOG:
            if media_type is not None and model_capability.media_type != media_type:
                continue
            entry = model_capability.as_dict()
            entry["isDefault"] = router.default_for(model_capability.media_type) == model_capability.id
            models.append(entry)
        return {"models": models}

    @app.get("/api/voices")
    async def list_voices() -> dict[str, list[dict[str, str]]]:
        lister = getattr(generator_set.audio, "list_voices", None)
        if lister is None:
            return {"voices": []}
        try:
            voices = await lister()
        except ProviderError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"voices": voices}

    @app.get("/api/tools")
    def tools() -> dict[str, list[str]]:
        return {"tools": executor.names()}

    return app


async def _task_events(subscription: TaskSubscription) -> AsyncIterator[StreamEvent]:
    try:
        yield TaskInitEvent(task=subscription.initial)
        if subscription.initial.is_terminal:
            yield task_event_for(subscription.initial)
            return
        async for record in subscription:
            yield task_event_for(record)
    finally:
        subscription.close()


async def _sweep_expired(registry: TaskRegistry, interval_s: float) -> None:
    while True:
        await asyncio.sleep(interval_s)
        removed = registry.evict_expired()
        logger.debug("sweeper event=run removed=%d", removed)


app = create_app()


def run() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
