"""Shared HTTP plumbing for provider adapters."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from media_orchestrator.errors import ProviderError, ProviderTimeoutError

logger = logging.getLogger(__name__)


class ProviderHttpClient:
    """Thin async HTTP client that maps transport failures onto ``ProviderError``."""

    def __init__(
        self,
        *,
        provider: str,
        base_url: str,
        timeout_s: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = path if path.startswith(("http://", "https://")) else f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_s, transport=self._transport
            ) as client:
                response = await client.request(method, url, headers=headers, json=json_body)
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(
                f"{self.provider} request timed out after {self.timeout_s:.2f}s",
                provider=self.provider,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"{self.provider} request failed: {exc}", provider=self.provider
            ) from exc

        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning(
                "provider_request event=http_error provider=%s status=%d url=%s",
                self.provider,
                response.status_code,
                url,
            )
            raise ProviderError(
                f"{self.provider} request failed with status {response.status_code}: "
                f"{message[:400]}",
                provider=self.provider,
            )
        return response

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self.request(method, path, headers=headers, json_body=json_body)
        try:
            parsed = response.json()
        except ValueError as exc:
            raise ProviderError(
                f"{self.provider} returned non-JSON response", provider=self.provider
            ) from exc
        if not isinstance(parsed, dict):
            raise ProviderError(
                f"{self.provider} response must be a JSON object", provider=self.provider
            )
        return parsed


def elapsed_ms(started_at: float) -> int:
    return int(round((time.perf_counter() - started_at) * 1000.0))


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
        detail = payload.get("detail")
        if isinstance(detail, dict) and isinstance(detail.get("message"), str):
            return detail["message"]
        if isinstance(detail, str):
            return detail
        if isinstance(payload.get("message"), str):
            return payload["message"]
    return response.text
