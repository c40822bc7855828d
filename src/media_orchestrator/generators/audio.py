"""Synchronous speech synthesis through ElevenLabs text-to-speech."""

from __future__ import annotations

import base64
import logging
import time

import httpx

from media_orchestrator.errors import ProviderError
from media_orchestrator.generators.base import (
    GenerationEnvelope,
    GenerationOptions,
    MediaMetadata,
)
from media_orchestrator.generators.catalog import ProviderRouter
from media_orchestrator.generators.http import ProviderHttpClient, elapsed_ms

logger = logging.getLogger(__name__)

OUTPUT_FORMAT = "mp3_44100_128"


class ElevenLabsAudioAdapter:
    media_type = "audio"
    synchronous = True

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        timeout_s: float,
        default_voice_id: str,
        router: ProviderRouter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.default_voice_id = default_voice_id
        self.router = router or ProviderRouter()
        self._http = ProviderHttpClient(
            provider="elevenlabs", base_url=base_url, timeout_s=timeout_s, transport=transport
        )

    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationEnvelope:
        self._require_key()
        model = self.router.select("audio", model_id=options.model)
        voice_id = options.voice or self.default_voice_id

        started_at = time.perf_counter()
        response = await self._http.request(
            "POST",
            f"/text-to-speech/{voice_id}",
            headers=self._headers(),
            json_body={"text": prompt, "model_id": model.id, "output_format": OUTPUT_FORMAT},
        )
        if not response.content:
            raise ProviderError("Audio provider returned an empty body", provider="elevenlabs")

        duration_ms = elapsed_ms(started_at)
        logger.info(
            "generation event=audio_complete model=%s voice=%s duration_ms=%d",
            model.id,
            voice_id,
            duration_ms,
        )
        return GenerationEnvelope(
            type="audio",
            data=base64.b64encode(response.content).decode("ascii"),
            mime_type="audio/mpeg",
            metadata=MediaMetadata(model=model.id, format="mp3", generation_time_ms=duration_ms),
        )

    async def list_voices(self) -> list[dict[str, str]]:
        self._require_key()
        payload = await self._http.request_json("GET", "/voices", headers=self._headers())
        voices = payload.get("voices")
        if not isinstance(voices, list):
            return []
        return [
            {"id": str(voice["voice_id"]), "name": str(voice.get("name", ""))}
            for voice in voices
            if isinstance(voice, dict) and voice.get("voice_id")
        ]

    def _require_key(self) -> None:
        if not self.api_key:
            raise ProviderError("ElevenLabs API key not configured", provider="elevenlabs")

    def _headers(self) -> dict[str, str]:
        return {"xi-api-key": self.api_key}
