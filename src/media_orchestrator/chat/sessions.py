"""Conversation history keyed by session id."""

from __future__ import annotations

import threading
from typing import Literal, Protocol

Role = Literal["user", "assistant"]


class SessionStore(Protocol):
    def history(self, session_id: str) -> list[dict[str, str]]: ...

    def append(self, session_id: str, role: Role, content: str) -> None: ...


class InMemorySessionStore:
    """Process-local history, trimmed to the most recent ``max_messages`` per session."""

    def __init__(self, *, max_messages: int = 50) -> None:
        self.max_messages = max_messages
        self._sessions: dict[str, list[dict[str, str]]] = {}
        self._lock = threading.Lock()

    def history(self, session_id: str) -> list[dict[str, str]]:
        with self._lock:
            return [dict(message) for message in self._sessions.get(session_id, [])]

    def append(self, session_id: str, role: Role, content: str) -> None:
        with self._lock:
            messages = self._sessions.setdefault(session_id, [])
            messages.append({"role": role, "content": content})
            if len(messages) > self.max_messages:
                del messages[: len(messages) - self.max_messages]
