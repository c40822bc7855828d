"""Tool-calling chat turn: model client, session history and loop controller."""

from media_orchestrator.chat.loop import ToolCallLoopController
from media_orchestrator.chat.model import (
    ChatModel,
    ModelTurn,
    OpenAIChatModel,
    ToolCall,
    build_chat_model,
)
from media_orchestrator.chat.sessions import InMemorySessionStore, SessionStore

__all__ = [
    "ChatModel",
    "InMemorySessionStore",
    "ModelTurn",
    "OpenAIChatModel",
    "SessionStore",
    "ToolCall",
    "ToolCallLoopController",
    "build_chat_model",
]
