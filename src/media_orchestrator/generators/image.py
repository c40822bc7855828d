"""Synchronous image generation through the OpenAI images API."""

from __future__ import annotations

import logging
import time

import httpx

from media_orchestrator.errors import ProviderError
from media_orchestrator.generators.base import (
    GenerationEnvelope,
    GenerationOptions,
    MediaMetadata,
    mime_type_for,
)
from media_orchestrator.generators.catalog import ProviderRouter
from media_orchestrator.generators.http import ProviderHttpClient, elapsed_ms

logger = logging.getLogger(__name__)

DEFAULT_SIZE = "1024x1024"


class OpenAIImageAdapter:
    media_type = "image"
    synchronous = True

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        timeout_s: float,
        router: ProviderRouter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.router = router or ProviderRouter()
        self._http = ProviderHttpClient(
            provider="openai", base_url=base_url, timeout_s=timeout_s, transport=transport
        )

    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationEnvelope:
        if not self.api_key:
            raise ProviderError("OpenAI API key not configured", provider="openai")

        model = self.router.select(
            "image", model_id=options.model, quality=options.quality, fmt=options.format
        )
        body = {
            "model": model.id,
            "prompt": prompt,
            "size": options.dimensions.as_size() if options.dimensions else DEFAULT_SIZE,
            "n": 1,
            "response_format": "b64_json",
        }
        if model.id == "dall-e-3":
            body["quality"] = "hd" if options.quality == "high" else "standard"

        started_at = time.perf_counter()
        payload = await self._http.request_json(
            "POST",
            "/images/generations",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json_body=body,
        )
        rows = payload.get("data")
        first = rows[0] if isinstance(rows, list) and rows else {}
        b64 = first.get("b64_json") if isinstance(first, dict) else None
        if not isinstance(b64, str) or not b64:
            raise ProviderError("Image provider returned no image data", provider="openai")

        fmt = (options.format or "png").lower()
        duration_ms = elapsed_ms(started_at)
        logger.info(
            "generation event=image_complete model=%s duration_ms=%d", model.id, duration_ms
        )
        return GenerationEnvelope(
            type="image",
            data=b64,
            mime_type=mime_type_for(fmt, fallback="image/png"),
            metadata=MediaMetadata(model=model.id, format=fmt, generation_time_ms=duration_ms),
        )
