"""Catalog of generation models and the router that picks one per request."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from media_orchestrator.generators.base import MediaType, Quality


@dataclass(frozen=True)
class ModelCapability:
    id: str
    name: str
    provider: str
    media_type: MediaType
    endpoint: str
    supported_formats: tuple[str, ...] = ()
    price_per_request: float | None = None
    async_polling: bool = False
    estimated_time_s: dict[str, float] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "type": self.media_type,
            "supportedFormats": list(self.supported_formats),
            "pricePerRequest": self.price_per_request,
            "asyncPolling": self.async_polling,
        }


MODEL_CATALOG: tuple[ModelCapability, ...] = (
    ModelCapability(
        id="dall-e-3",
        name="DALL-E 3",
        provider="openai",
        media_type="image",
        endpoint="/images/generations",
        supported_formats=("png", "webp", "jpeg"),
        price_per_request=0.04,
        metadata={"sizes": ["1024x1024", "1024x1536", "1536x1024"]},
    ),
    ModelCapability(
        id="dall-e-2",
        name="DALL-E 2",
        provider="openai",
        media_type="image",
        endpoint="/images/generations",
        supported_formats=("png", "webp", "jpeg"),
        price_per_request=0.02,
        metadata={"sizes": ["256x256", "512x512", "1024x1024"]},
    ),
    ModelCapability(
        id="cogvideox-3",
        name="CogVideoX-3",
        provider="zai",
        media_type="video",
        endpoint="/videos/generations",
        supported_formats=("mp4",),
        price_per_request=0.20,
        async_polling=True,
        estimated_time_s={"speed": 30.0, "quality": 90.0},
        metadata={"durations": [5, 10], "fps": [30, 60]},
    ),
    ModelCapability(
        id="eleven_turbo_v2",
        name="Eleven Turbo v2",
        provider="elevenlabs",
        media_type="audio",
        endpoint="/text-to-speech",
        supported_formats=("mp3", "wav", "pcm"),
        metadata={"languages": ["en"]},
    ),
    ModelCapability(
        id="eleven_multilingual_v2",
        name="Eleven Multilingual v2",
        provider="elevenlabs",
        media_type="audio",
        endpoint="/text-to-speech",
        supported_formats=("mp3", "wav", "pcm"),
        metadata={"languages": ["en", "es", "fr", "de", "it", "pt", "ja", "zh"]},
    ),
)

DEFAULT_MODELS: dict[str, str] = {
    "image": "dall-e-3",
    "audio": "eleven_multilingual_v2",
    "video": "cogvideox-3",
}

DEFAULT_ESTIMATED_TIME_S = 30.0


def get_model(model_id: str) -> ModelCapability | None:
    for model in MODEL_CATALOG:
        if model.id == model_id:
            return model
    return None


def models_for(media_type: MediaType) -> list[ModelCapability]:
    return [model for model in MODEL_CATALOG if model.media_type == media_type]


def is_async_model(model_id: str) -> bool:
    model = get_model(model_id)
    return bool(model and model.async_polling)


def estimated_time_s(model_id: str, quality: Quality | None = None) -> float:
    model = get_model(model_id)
    if model is None or not model.estimated_time_s:
        return DEFAULT_ESTIMATED_TIME_S
    key = "quality" if quality == "high" else "speed"
    return model.estimated_time_s.get(key, DEFAULT_ESTIMATED_TIME_S)


class ProviderRouter:
    """Pick a model for a modality from explicit id, format and quality hints."""

    def __init__(self, defaults: dict[str, str] | None = None) -> None:
        self._defaults = dict(defaults or DEFAULT_MODELS)

    def set_default(self, media_type: MediaType, model_id: str) -> None:
        model = get_model(model_id)
        if model is None or model.media_type != media_type:
            raise ValueError(f"Unknown {media_type} model: {model_id}")
        self._defaults[media_type] = model_id

    def default_for(self, media_type: MediaType) -> str:
        return self._defaults[media_type]

    def select(
        self,
        media_type: MediaType,
        *,
        model_id: str | None = None,
        quality: Quality | None = None,
        fmt: str | None = None,
    ) -> ModelCapability:
        candidates = models_for(media_type)
        if not candidates:
            raise ValueError(f"No models available for type: {media_type}")

        if model_id:
            explicit = get_model(model_id)
            if explicit is not None and explicit.media_type == media_type:
                return explicit

        filtered = candidates
        if fmt:
            filtered = [m for m in candidates if fmt.lower() in m.supported_formats] or candidates

        if quality in {"high", "low"} and len(filtered) > 1:
            priced = sorted(filtered, key=lambda m: m.price_per_request or 0.0)
            return priced[-1] if quality == "high" else priced[0]

        default = get_model(self._defaults.get(media_type, ""))
        if default is not None and default in filtered:
            return default
        return filtered[0]
