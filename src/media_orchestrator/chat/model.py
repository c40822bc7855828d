from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from media_orchestrator.config.settings import Settings
from media_orchestrator.errors import ChatModelError
from media_orchestrator.streaming.events import Usage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    # Set when the model produced arguments that are not a JSON object.
    parse_error: str | None = None

    def as_message(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": json.dumps(self.arguments)},
        }


@dataclass
class ModelTurn:
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    finish_reason: str | None = None


class ChatModel(Protocol):
    """Interface for one round of a tool-enabled chat completion."""

    async def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]
    ) -> ModelTurn: ...


class OpenAIChatModel:
    """Small OpenAI-compatible adapter using the chat completions REST API."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout_s: float = 60.0,
        max_retries: int = 1,
        backoff_s: float = 0.2,
        temperature: float = 0.1,
        max_tokens: int = 4096,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max(0, max_retries)
        self.backoff_s = max(0.0, backoff_s)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._transport = transport

    async def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]
    ) -> ModelTurn:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        response_json = await self._request_with_retry(payload)
        return self._parse_turn(response_json)

    async def _request_with_retry(self, payload: dict[str, Any]) -> dict[str, Any]:
        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return await self._request(payload)
            except (httpx.HTTPError, ValueError) as exc:
                last_error = exc
                logger.warning(
                    "OpenAI request failed attempt=%d/%d model=%s reason=%s",
                    attempt + 1,
                    self.max_retries + 1,
                    self.model,
                    exc,
                )
                if attempt < self.max_retries and self.backoff_s > 0:
                    await asyncio.sleep(self.backoff_s)
        raise ChatModelError(f"Chat model request failed: {last_error}") from last_error

    async def _request(self, payload: dict[str, Any]) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        response.raise_for_status()
        parsed = response.json()
        if not isinstance(parsed, dict):
            raise ValueError("OpenAI response must be a JSON object")
        return parsed

    @staticmethod
    def _parse_turn(response_json: dict[str, Any]) -> ModelTurn:
        choices = response_json.get("choices") or []
        if not choices:
            raise ChatModelError("OpenAI response did not contain choices")

        choice = choices[0]
        message = choice.get("message") or {}
        usage_json = response_json.get("usage") or {}
        return ModelTurn(
            content=_extract_content(message.get("content")),
            tool_calls=[_parse_tool_call(item) for item in message.get("tool_calls") or []],
            usage=Usage(
                prompt_tokens=int(usage_json.get("prompt_tokens") or 0),
                completion_tokens=int(usage_json.get("completion_tokens") or 0),
                total_tokens=int(usage_json.get("total_tokens") or 0),
            ),
            finish_reason=choice.get("finish_reason"),
        )


def build_chat_model(
    settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None
) -> ChatModel | None:
    api_key = settings.resolved_openai_api_key()
    if not api_key:
        return None
    return OpenAIChatModel(
        api_key=api_key,
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        timeout_s=settings.llm_timeout_s,
        max_retries=settings.llm_max_retries,
        backoff_s=settings.llm_backoff_s,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        transport=transport,
    )


def _extract_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            item["text"]
            for item in content
            if isinstance(item, dict) and isinstance(item.get("text"), str)
        )
    return ""


def _parse_tool_call(item: dict[str, Any]) -> ToolCall:
    function = item.get("function") or {}
    name = str(function.get("name") or "")
    call_id = str(item.get("id") or "")
    raw_arguments = function.get("arguments") or "{}"
    if isinstance(raw_arguments, dict):
        return ToolCall(id=call_id, name=name, arguments=raw_arguments)
    try:
        arguments = json.loads(raw_arguments)
    except json.JSONDecodeError as exc:
        return ToolCall(id=call_id, name=name, parse_error=f"Invalid tool arguments JSON: {exc}")
    if not isinstance(arguments, dict):
        return ToolCall(id=call_id, name=name, parse_error="Tool arguments must be a JSON object")
    return ToolCall(id=call_id, name=name, arguments=arguments)
