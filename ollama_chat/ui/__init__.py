"""NiceGUI interface - thin visualization layer for chat interactions.

Responsibilities:
    - Session list with previews and relative dates
    - Chat message display with streaming support
    - Image upload, settings and system prompt dialogs

Contains no business logic. Every action is a ChatController call.
"""
