from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from media_orchestrator.chat.model import ModelTurn
from media_orchestrator.config.settings import Settings
from media_orchestrator.errors import ChatModelError
from media_orchestrator.generators import GeneratorSet
from media_orchestrator.generators.base import (
    AsyncHandle,
    GenerationEnvelope,
    GenerationOptions,
    MediaMetadata,
    VideoStatus,
)


def make_envelope(media_type: str = "image", *, model: str = "dall-e-3") -> GenerationEnvelope:
    mime = {"image": "image/png", "audio": "audio/mpeg", "video": "video/mp4"}[media_type]
    fmt = {"image": "png", "audio": "mp3", "video": "mp4"}[media_type]
    return GenerationEnvelope(
        type=media_type,
        data="ZmFrZS1tZWRpYQ==",
        mime_type=mime,
        metadata=MediaMetadata(model=model, format=fmt, generation_time_ms=12),
    )


class FakeSyncAdapter:
    """Test-only image/audio generator that records calls and can be told to fail."""

    synchronous = True

    def __init__(self, media_type: str, model: str) -> None:
        self.media_type = media_type
        self.model = model
        self.calls: list[tuple[str, GenerationOptions]] = []
        self.error: Exception | None = None
        self.delay_s = 0.0

    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationEnvelope:
        self.calls.append((prompt, options))
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return make_envelope(self.media_type, model=self.model)

    async def list_voices(self) -> list[dict[str, str]]:
        return [{"id": "voice-1", "name": "Rachel"}]


class FakeVideoAdapter:
    """Test-only long-running generator replaying a scripted sequence of poll results."""

    media_type = "video"
    synchronous = False

    def __init__(self) -> None:
        self.calls: list[tuple[str, GenerationOptions]] = []
        self.polls = 0
        self.submit_error: Exception | None = None
        self.poll_error: Exception | None = None
        self.estimated_time_s = 1.0
        self.delay_s = 0.0
        self.script: list[VideoStatus] = [
            VideoStatus(state="processing"),
            VideoStatus(state="processing"),
            VideoStatus(state="succeeded", progress=100, envelope=make_envelope("video", model="cogvideox-3")),
        ]

    async def generate(self, prompt: str, options: GenerationOptions) -> AsyncHandle:
        self.calls.append((prompt, options))
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.submit_error is not None:
            raise self.submit_error
        return AsyncHandle(
            external_id="zai-task-1", model="cogvideox-3", estimated_time_s=self.estimated_time_s
        )

    async def poll(self, handle: AsyncHandle) -> VideoStatus:
        self.polls += 1
        if self.poll_error is not None:
            raise self.poll_error
        index = min(self.polls - 1, len(self.script) - 1)
        return self.script[index]


class FakeChatModel:
    """Test-only chat model replaying scripted turns; an exception entry is raised."""

    def __init__(self, turns: list[ModelTurn | Exception] | None = None) -> None:
        self.turns = list(turns or [])
        self.requests: list[dict[str, Any]] = []

    async def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]
    ) -> ModelTurn:
        self.requests.append({"messages": [dict(m) for m in messages], "tools": list(tools)})
        if not self.turns:
            raise ChatModelError("no scripted turn left")
        turn = self.turns.pop(0)
        if isinstance(turn, Exception):
            raise turn
        return turn


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def _isolate_provider_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("OPENAI_API_KEY", "ZAI_API_KEY", "ELEVENLABS_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        provider_timeout_s=2.0,
        tool_timeout_s=1.0,
        video_poll_interval_s=0.01,
        video_timeout_s=5.0,
        cleanup_interval_s=60.0,
    )


@pytest.fixture
def fake_generators() -> GeneratorSet:
    return GeneratorSet(
        image=FakeSyncAdapter("image", "dall-e-3"),
        audio=FakeSyncAdapter("audio", "eleven_multilingual_v2"),
        video=FakeVideoAdapter(),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def chat_model() -> FakeChatModel:
    return FakeChatModel()


@pytest.fixture
def video_envelope() -> GenerationEnvelope:
    return make_envelope("video", model="cogvideox-3")
