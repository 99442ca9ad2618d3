"""Chat orchestration.

Responsibilities:
    - Send, reset, cancel and select intents for sessions
    - One-send-in-flight guard per session
    - Folding streamed deltas into the stored assistant message
    - Connection, settings and image attachment intents

UI-framework-agnostic: presentation layers call in, nothing calls out.
"""

from ollama_chat.chat.controller import (
    ERROR_REPLY,
    AppState,
    ChatController,
    SendState,
)

__all__ = ["ERROR_REPLY", "AppState", "ChatController", "SendState"]
