"""Generator adapter contracts and the payloads they exchange with the dispatcher."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MediaType = Literal["image", "audio", "video"]
Quality = Literal["low", "medium", "high"]

MIME_TYPES: dict[str, str] = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "pcm": "audio/L16",
    "mp4": "video/mp4",
}


class WireModel(BaseModel):
    """Base for payloads that cross the HTTP boundary in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Dimensions(WireModel):
    width: int = Field(ge=1)
    height: int = Field(ge=1)

    def as_size(self) -> str:
        return f"{self.width}x{self.height}"


class GenerationOptions(WireModel):
    """Caller-tunable knobs; each adapter reads only the ones it understands."""

    model: str | None = None
    format: str | None = None
    dimensions: Dimensions | None = None
    duration: Literal[5, 10] | None = None
    fps: Literal[30, 60] | None = None
    voice: str | None = None
    quality: Quality | None = None
    with_audio: bool = False
    image_url: str | None = None


class MediaMetadata(WireModel):
    model: str
    format: str | None = None
    generation_time_ms: int | None = None


class GenerationEnvelope(WireModel):
    """Inline generator output: base64 payload plus format and model metadata."""

    type: MediaType
    data: str | None = None
    mime_type: str
    metadata: MediaMetadata


@dataclass(frozen=True)
class AsyncHandle:
    """Upstream task reference returned by long-running generators."""

    external_id: str
    model: str
    estimated_time_s: float


@dataclass(frozen=True)
class VideoStatus:
    state: Literal["processing", "succeeded", "failed"]
    progress: int | None = None
    envelope: GenerationEnvelope | None = None
    error: str | None = None


@runtime_checkable
class GeneratorAdapter(Protocol):
    """Uniform capability interface over one generation backend.

    Synchronous adapters return a :class:`GenerationEnvelope` from
    ``generate``; long-running adapters return an :class:`AsyncHandle` and
    additionally implement ``poll``.
    """

    media_type: MediaType
    synchronous: bool

    async def generate(
        self, prompt: str, options: GenerationOptions
    ) -> GenerationEnvelope | AsyncHandle: ...


@runtime_checkable
class PollingGeneratorAdapter(GeneratorAdapter, Protocol):
    async def poll(self, handle: AsyncHandle) -> VideoStatus: ...


def mime_type_for(fmt: str, *, fallback: str = "application/octet-stream") -> str:
    return MIME_TYPES.get(fmt.lower(), fallback)
