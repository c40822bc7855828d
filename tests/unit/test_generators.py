import asyncio
import base64
import json

import httpx
import pytest

from media_orchestrator.errors import ProviderError, ProviderTimeoutError
from media_orchestrator.generators.audio import ElevenLabsAudioAdapter
from media_orchestrator.generators.base import AsyncHandle, Dimensions, GenerationOptions
from media_orchestrator.generators.catalog import ProviderRouter, estimated_time_s, is_async_model
from media_orchestrator.generators.image import OpenAIImageAdapter
from media_orchestrator.generators.video import ZaiVideoAdapter


def _image_adapter(handler, api_key: str = "sk-test") -> OpenAIImageAdapter:
    return OpenAIImageAdapter(
        api_key=api_key,
        base_url="https://images.test/v1",
        timeout_s=2.0,
        transport=httpx.MockTransport(handler),
    )


def test_image_adapter_returns_inline_envelope() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": [{"b64_json": "aW1hZ2U="}]})

    adapter = _image_adapter(handler)
    options = GenerationOptions(quality="high", dimensions=Dimensions(width=1536, height=1024))

    envelope = asyncio.run(adapter.generate("a red circle", options))

    assert seen["url"] == "https://images.test/v1/images/generations"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "dall-e-3"
    assert seen["body"]["quality"] == "hd"
    assert seen["body"]["size"] == "1536x1024"
    assert seen["body"]["response_format"] == "b64_json"
    assert envelope.type == "image"
    assert envelope.data == "aW1hZ2U="
    assert envelope.mime_type == "image/png"
    assert envelope.metadata.model == "dall-e-3"
    assert envelope.metadata.generation_time_ms is not None


def test_image_adapter_requires_api_key() -> None:
    adapter = _image_adapter(lambda request: httpx.Response(500), api_key="")

    with pytest.raises(ProviderError, match="OpenAI API key not configured"):
        asyncio.run(adapter.generate("a cat", GenerationOptions()))


def test_image_adapter_maps_http_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "content policy violation"}})

    adapter = _image_adapter(handler)

    with pytest.raises(ProviderError, match="status 400: content policy violation"):
        asyncio.run(adapter.generate("a cat", GenerationOptions()))


def test_image_adapter_maps_timeouts() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    adapter = _image_adapter(handler)

    with pytest.raises(ProviderTimeoutError):
        asyncio.run(adapter.generate("a cat", GenerationOptions()))


def test_audio_adapter_base64_encodes_speech() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["key"] = request.headers["xi-api-key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, content=b"ID3-audio-bytes")

    adapter = ElevenLabsAudioAdapter(
        api_key="xi-test",
        base_url="https://tts.test/v1",
        timeout_s=2.0,
        default_voice_id="voice-default",
        transport=httpx.MockTransport(handler),
    )

    envelope = asyncio.run(adapter.generate("hello world", GenerationOptions()))

    assert seen["path"] == "/v1/text-to-speech/voice-default"
    assert seen["key"] == "xi-test"
    assert seen["body"]["model_id"] == "eleven_multilingual_v2"
    assert seen["body"]["output_format"] == "mp3_44100_128"
    assert base64.b64decode(envelope.data) == b"ID3-audio-bytes"
    assert envelope.mime_type == "audio/mpeg"


def test_audio_adapter_lists_voices() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"voices": [{"voice_id": "v1", "name": "Rachel"}, {"name": "no id"}]}
        )

    adapter = ElevenLabsAudioAdapter(
        api_key="xi-test",
        base_url="https://tts.test/v1",
        timeout_s=2.0,
        default_voice_id="v1",
        transport=httpx.MockTransport(handler),
    )

    assert asyncio.run(adapter.list_voices()) == [{"id": "v1", "name": "Rachel"}]


def test_audio_adapter_requires_api_key() -> None:
    adapter = ElevenLabsAudioAdapter(
        api_key="", base_url="https://tts.test/v1", timeout_s=2.0, default_voice_id="v1"
    )

    with pytest.raises(ProviderError, match="ElevenLabs API key not configured"):
        asyncio.run(adapter.generate("hi", GenerationOptions()))


def _video_adapter(handler) -> ZaiVideoAdapter:
    return ZaiVideoAdapter(
        api_key="zai-test",
        base_url="https://video.test/api/paas/v4",
        timeout_s=2.0,
        transport=httpx.MockTransport(handler),
    )


def test_video_submission_returns_handle() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["duration"] == 10
        assert body["quality"] == "quality"
        return httpx.Response(200, json={"id": "zai-123", "task_status": "PROCESSING"})

    adapter = _video_adapter(handler)

    handle = asyncio.run(adapter.generate("waves", GenerationOptions(duration=10, quality="high")))

    assert handle == AsyncHandle(external_id="zai-123", model="cogvideox-3", estimated_time_s=90.0)


def test_video_submission_failure_raises() -> None:
    adapter = _video_adapter(lambda request: httpx.Response(200, json={"task_status": "FAIL"}))

    with pytest.raises(ProviderError):
        asyncio.run(adapter.generate("waves", GenerationOptions()))


def test_video_poll_downloads_result_on_success() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/async-result/zai-123"):
            return httpx.Response(
                200,
                json={
                    "task_status": "SUCCESS",
                    "video_result": [{"url": "https://cdn.test/video.mp4"}],
                },
            )
        assert str(request.url) == "https://cdn.test/video.mp4"
        return httpx.Response(200, content=b"mp4-bytes")

    adapter = _video_adapter(handler)
    handle = AsyncHandle(external_id="zai-123", model="cogvideox-3", estimated_time_s=30.0)

    status = asyncio.run(adapter.poll(handle))

    assert status.state == "succeeded"
    assert base64.b64decode(status.envelope.data) == b"mp4-bytes"
    assert status.envelope.mime_type == "video/mp4"


@pytest.mark.parametrize(
    ("payload", "state"),
    [
        ({"task_status": "PROCESSING"}, "processing"),
        ({"task_status": "FAIL", "error": {"message": "moderation"}}, "failed"),
        ({"task_status": "SUCCESS", "video_result": []}, "failed"),
    ],
)
def test_video_poll_states(payload: dict, state: str) -> None:
    adapter = _video_adapter(lambda request: httpx.Response(200, json=payload))
    handle = AsyncHandle(external_id="zai-123", model="cogvideox-3", estimated_time_s=30.0)

    status = asyncio.run(adapter.poll(handle))

    assert status.state == state


def test_router_prefers_explicit_model_then_quality_then_default() -> None:
    router = ProviderRouter()

    assert router.select("image", model_id="dall-e-2").id == "dall-e-2"
    assert router.select("image", quality="low").id == "dall-e-2"
    assert router.select("image", quality="high").id == "dall-e-3"
    assert router.select("image").id == "dall-e-3"
    assert router.select("image", model_id="cogvideox-3").id == "dall-e-3"


def test_router_default_can_be_changed() -> None:
    router = ProviderRouter()
    router.set_default("audio", "eleven_turbo_v2")

    assert router.select("audio").id == "eleven_turbo_v2"
    with pytest.raises(ValueError):
        router.set_default("audio", "dall-e-3")


def test_catalog_marks_video_as_async_with_estimates() -> None:
    assert is_async_model("cogvideox-3")
    assert not is_async_model("dall-e-3")
    assert estimated_time_s("cogvideox-3", "high") == 90.0
    assert estimated_time_s("cogvideox-3") == 30.0
