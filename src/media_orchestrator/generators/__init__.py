"""Generator adapters over the image, audio and video providers."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from media_orchestrator.config.settings import Settings
from media_orchestrator.generators.audio import ElevenLabsAudioAdapter
from media_orchestrator.generators.base import (
    AsyncHandle,
    GenerationEnvelope,
    GenerationOptions,
    GeneratorAdapter,
    MediaMetadata,
    MediaType,
    PollingGeneratorAdapter,
    VideoStatus,
)
from media_orchestrator.generators.catalog import MODEL_CATALOG, ProviderRouter
from media_orchestrator.generators.image import OpenAIImageAdapter
from media_orchestrator.generators.video import ZaiVideoAdapter


@dataclass(frozen=True)
class GeneratorSet:
    image: GeneratorAdapter
    audio: GeneratorAdapter
    video: PollingGeneratorAdapter

    def for_type(self, media_type: MediaType) -> GeneratorAdapter:
        return {"image": self.image, "audio": self.audio, "video": self.video}[media_type]


def build_generators(
    settings: Settings,
    *,
    router: ProviderRouter | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> GeneratorSet:
    shared_router = router or ProviderRouter()
    return GeneratorSet(
        image=OpenAIImageAdapter(
            api_key=settings.resolved_openai_api_key(),
            base_url=settings.openai_base_url,
            timeout_s=settings.provider_timeout_s,
            router=shared_router,
            transport=transport,
        ),
        audio=ElevenLabsAudioAdapter(
            api_key=settings.resolved_elevenlabs_api_key(),
            base_url=settings.elevenlabs_base_url,
            timeout_s=settings.provider_timeout_s,
            default_voice_id=settings.default_voice_id,
            router=shared_router,
            transport=transport,
        ),
        video=ZaiVideoAdapter(
            api_key=settings.resolved_zai_api_key(),
            base_url=settings.zai_base_url,
            timeout_s=settings.provider_timeout_s,
            router=shared_router,
            transport=transport,
        ),
    )


__all__ = [
    "AsyncHandle",
    "ElevenLabsAudioAdapter",
    "GenerationEnvelope",
    "GenerationOptions",
    "GeneratorAdapter",
    "GeneratorSet",
    "MODEL_CATALOG",
    "MediaMetadata",
    "MediaType",
    "OpenAIImageAdapter",
    "PollingGeneratorAdapter",
    "ProviderRouter",
    "VideoStatus",
    "ZaiVideoAdapter",
    "build_generators",
]
