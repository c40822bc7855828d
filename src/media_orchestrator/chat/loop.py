"""One chat turn: model rounds interleaved with sequential tool invocations.

Turn states: idle -> streaming -> (tool pending -> streaming)* -> done | errored.
The controller yields events in exactly the order the client must see them
and never yields anything after ``done`` or ``error``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any
from uuid import uuid4

from media_orchestrator.chat.model import ChatModel, ModelTurn, ToolCall
from media_orchestrator.chat.sessions import SessionStore
from media_orchestrator.errors import ChatModelError
from media_orchestrator.streaming.events import (
    DoneEvent,
    ErrorEvent,
    StreamEvent,
    TextEvent,
    ToolCallEvent,
    ToolResultEvent,
    Usage,
)
from media_orchestrator.tools.gateway import ToolExecutor, ToolOutcome

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are the assistant of a media generation service. Answer directly when you can. "
    "Use the available tools to look up generation tasks, task statistics or models "
    "instead of guessing."
)


class ToolCallLoopController:
    def __init__(
        self,
        *,
        model: ChatModel,
        sessions: SessionStore,
        executor: ToolExecutor | None = None,
        max_rounds: int = 10,
        tool_timeout_s: float = 30.0,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self.model = model
        self.sessions = sessions
        self.executor = executor
        self.max_rounds = max_rounds
        self.tool_timeout_s = tool_timeout_s
        self.system_prompt = system_prompt

    async def run(
        self,
        message: str,
        *,
        session_id: str | None = None,
        enable_tools: bool = True,
    ) -> AsyncIterator[StreamEvent]:
        session_id = session_id or str(uuid4())
        history = self.sessions.history(session_id)
        self.sessions.append(session_id, "user", message)

        messages: list[dict[str, Any]] = [
            {"role": "system", "content": self.system_prompt},
            *history,
            {"role": "user", "content": message},
        ]
        tools = self.executor.definitions() if enable_tools and self.executor else []
        usage = Usage()
        texts: list[str] = []

        for round_number in range(1, self.max_rounds + 1):
            try:
                turn = await self.model.complete(messages, tools)
            except ChatModelError as exc:
                logger.warning(
                    "chat event=model_failed session_id=%s round=%d error=%s",
                    session_id,
                    round_number,
                    exc,
                )
                yield ErrorEvent(error=str(exc))
                return

            usage.add(turn.usage)
            usage.rounds = round_number
            if turn.content:
                texts.append(turn.content)
                yield TextEvent(content=turn.content)

            if not turn.tool_calls:
                break

            messages.append(_assistant_message(turn))
            for call in turn.tool_calls:
                yield ToolCallEvent(tool=call.name, args=call.arguments, id=call.id)
                outcome = await self._invoke(call, enabled=bool(tools))
                payload = outcome.payload()
                yield ToolResultEvent(
                    tool=call.name, id=call.id, result=payload, success=outcome.success
                )
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.id,
                        "content": json.dumps(payload, default=str),
                    }
                )
        else:
            logger.warning(
                "chat event=max_rounds_reached session_id=%s max_rounds=%d",
                session_id,
                self.max_rounds,
            )

        self.sessions.append(session_id, "assistant", "\n".join(texts))
        logger.info(
            "chat event=done session_id=%s rounds=%d total_tokens=%d",
            session_id,
            usage.rounds,
            usage.total_tokens,
        )
        yield DoneEvent(usage=usage, session_id=session_id)

    async def _invoke(self, call: ToolCall, *, enabled: bool) -> ToolOutcome:
        if call.parse_error:
            return ToolOutcome(success=False, error=call.parse_error)
        if self.executor is None or not enabled:
            return ToolOutcome(success=False, error=f"Tools are disabled: {call.name}")
        try:
            return await asyncio.wait_for(
                self.executor.execute(call.name, call.arguments), timeout=self.tool_timeout_s
            )
        except asyncio.TimeoutError:
            return ToolOutcome(
                success=False,
                error=f"Tool '{call.name}' timed out after {self.tool_timeout_s:.2f}s",
            )
        except Exception as exc:  # noqa: BLE001 - a broken tool must not end the turn
            logger.exception("chat event=tool_crashed tool=%s", call.name)
            return ToolOutcome(success=False, error=str(exc) or exc.__class__.__name__)


def _assistant_message(turn: ModelTurn) -> dict[str, Any]:
    return {
        "role": "assistant",
        "content": turn.content or None,
        "tool_calls": [call.as_message() for call in turn.tool_calls],
    }
