"""Long-running video generation through the Zai CogVideoX API.

Submission returns the provider's own task id immediately; the dispatcher
polls ``/async-result/{id}`` out-of-band until the provider reports a
terminal state.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import httpx

from media_orchestrator.errors import ProviderError
from media_orchestrator.generators.base import (
    AsyncHandle,
    GenerationEnvelope,
    GenerationOptions,
    MediaMetadata,
    VideoStatus,
)
from media_orchestrator.generators.catalog import ProviderRouter, estimated_time_s
from media_orchestrator.generators.http import ProviderHttpClient

logger = logging.getLogger(__name__)

DEFAULT_SIZE = "1920x1080"


class ZaiVideoAdapter:
    media_type = "video"
    synchronous = False

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
            provider="zai", base_url=base_url, timeout_s=timeout_s, transport=transport
        )

    async def generate(self, prompt: str, options: GenerationOptions) -> AsyncHandle:
        self._require_key()
        model = self.router.select("video", model_id=options.model)
        body: dict[str, Any] = {
            "model": model.id,
            "prompt": prompt,
            "quality": "quality" if options.quality == "high" else "speed",
            "with_audio": options.with_audio,
            "size": options.dimensions.as_size() if options.dimensions else DEFAULT_SIZE,
            "fps": options.fps or 30,
            "duration": options.duration or 5,
        }
        if options.image_url:
            body["image_url"] = [options.image_url]

        payload = await self._http.request_json(
            "POST", "/videos/generations", headers=self._headers(), json_body=body
        )
        if payload.get("task_status") == "FAIL":
            raise ProviderError("Video generation failed", provider="zai")
        external_id = payload.get("id")
        if not isinstance(external_id, str) or not external_id:
            raise ProviderError("Video provider did not return a task id", provider="zai")

        logger.info("generation event=video_submitted model=%s external_id=%s", model.id, external_id)
        return AsyncHandle(
            external_id=external_id,
            model=model.id,
            estimated_time_s=estimated_time_s(model.id, options.quality),
        )

    async def poll(self, handle: AsyncHandle) -> VideoStatus:
        self._require_key()
        payload = await self._http.request_json(
            "GET", f"/async-result/{handle.external_id}", headers=self._headers()
        )
        status = str(payload.get("task_status", "")).upper()
        if status == "PROCESSING":
            return VideoStatus(state="processing")

        if status == "SUCCESS":
            url = _first_video_url(payload)
            if url is None:
                return VideoStatus(state="failed", error="Video result did not include a URL")
            download = await self._http.request("GET", url)
            return VideoStatus(
                state="succeeded",
                progress=100,
                envelope=GenerationEnvelope(
                    type="video",
                    data=base64.b64encode(download.content).decode("ascii"),
                    mime_type="video/mp4",
                    metadata=MediaMetadata(model=handle.model, format="mp4"),
                ),
            )

        return VideoStatus(state="failed", error=_failure_reason(payload))

    def _require_key(self) -> None:
        if not self.api_key:
            raise ProviderError("Zai API key not configured", provider="zai")

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}


def _first_video_url(payload: dict[str, Any]) -> str | None:
    results = payload.get("video_result")
    if not isinstance(results, list) or not results:
        return None
    first = results[0]
    if not isinstance(first, dict):
        return None
    url = first.get("url")
    return url if isinstance(url, str) and url else None


def _failure_reason(payload: dict[str, Any]) -> str:
    error = payload.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return "Video generation failed"
