"""Schema-enforcing tool execution gateway with timeout/retry telemetry."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import ValidationError

from media_orchestrator.errors import ToolExecutionError
from media_orchestrator.tools.registry import ToolSpec, list_tools, tool_definitions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolOutcome:
    success: bool
    result: Any = None
    error: str | None = None
    attempts: int = 1
    duration_ms: float = 0.0

    def payload(self) -> Any:
        """Value reported back to the client and the model for this call."""
        if self.success:
            return self.result
        return {"error": self.error or "Tool failed"}


class ToolExecutor(Protocol):
    async def execute(self, tool: str, args: dict[str, Any]) -> ToolOutcome: ...

    def definitions(self) -> list[dict[str, Any]]: ...

    def names(self) -> list[str]: ...


class RegistryToolExecutor:
    """Execute registered tools with strict validation and retry/timeout controls.

    Never raises: every failure (unknown tool, invalid arguments, tool error,
    timeout) comes back as an unsuccessful :class:`ToolOutcome`.
    """

    def __init__(
        self,
        *,
        registry: dict[str, ToolSpec],
        tool_timeout_s: float = 30.0,
        max_retries: int = 0,
        backoff_s: float = 0.0,
    ) -> None:
        self.registry = registry
        self.tool_timeout_s = tool_timeout_s
        self.max_retries = max_retries
        self.backoff_s = backoff_s

    def names(self) -> list[str]:
        return list_tools(self.registry)

    def definitions(self) -> list[dict[str, Any]]:
        return tool_definitions(self.registry)

    async def execute(self, tool: str, args: dict[str, Any]) -> ToolOutcome:
        started_at = time.perf_counter()
        attempts = 0
        final_error = "unknown error"

        for attempt in range(self.max_retries + 1):
            attempts = attempt + 1
            try:
                output = await self._execute_once(tool, args)
                logger.info(
                    "tool event=ok tool=%s attempts=%d duration_ms=%.2f",
                    tool,
                    attempts,
                    _duration_ms(started_at),
                )
                return ToolOutcome(
                    success=True,
                    result=output,
                    attempts=attempts,
                    duration_ms=_duration_ms(started_at),
                )
            except ToolExecutionError as exc:
                final_error = str(exc)
                if not _retryable(exc):
                    break
                if attempt < self.max_retries and self.backoff_s > 0:
                    await asyncio.sleep(self.backoff_s)

        logger.warning("tool event=failed tool=%s attempts=%d error=%s", tool, attempts, final_error)
        return ToolOutcome(
            success=False,
            error=final_error,
            attempts=attempts,
            duration_ms=_duration_ms(started_at),
        )

    async def _execute_once(self, tool: str, args: dict[str, Any]) -> dict[str, Any]:
        spec = self.registry.get(tool)
        if spec is None:
            raise _PermanentToolError(tool, f"Unknown tool: {tool}")

        try:
            payload = spec.input_model.model_validate(args or {})
        except ValidationError as exc:
            raise _PermanentToolError(tool, f"Invalid arguments for '{tool}': {exc}") from exc

        try:
            if inspect.iscoroutinefunction(spec.fn):
                raw_output = await asyncio.wait_for(spec.fn(payload), timeout=self.tool_timeout_s)
            else:
                raw_output = await asyncio.wait_for(
                    asyncio.to_thread(spec.fn, payload), timeout=self.tool_timeout_s
                )
        except asyncio.TimeoutError as exc:
            raise ToolExecutionError(
                tool, f"Tool '{tool}' timed out after {self.tool_timeout_s:.2f}s"
            ) from exc
        except ToolExecutionError:
            raise
        except Exception as exc:  # noqa: BLE001 - tool failures become unsuccessful results
            raise ToolExecutionError(tool, str(exc) or exc.__class__.__name__) from exc

        try:
            validated_output = spec.output_model.model_validate(raw_output)
        except ValidationError as exc:
            raise _PermanentToolError(tool, f"Tool '{tool}' returned invalid output: {exc}") from exc
        return validated_output.model_dump(mode="json")


class _PermanentToolError(ToolExecutionError):
    """Failure that another attempt cannot fix."""


def _retryable(exc: ToolExecutionError) -> bool:
    return not isinstance(exc, _PermanentToolError)


def _duration_ms(started_at: float) -> float:
    return round((time.perf_counter() - started_at) * 1000.0, 2)
