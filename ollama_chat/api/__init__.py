"""FastAPI endpoints for the Ollama chat client.

A headless surface over the session controller: every UI intent is one
HTTP call. Supports Server-Sent Events for real-time reply streaming.

Endpoints:
    - GET /health: Service health status
    - GET /connection, POST /connection/check: Server reachability and models
    - GET/PUT /settings, POST /settings/test: Endpoint and default model
    - /sessions: Create, list, edit, delete, select, reset, cancel
    - POST /sessions/{id}/messages: Send a message, stream the reply
    - /attachments/image: Pending image upload
    - /prompts: System prompt templates
"""

from ollama_chat.api.app import create_app

__all__ = ["create_app"]
