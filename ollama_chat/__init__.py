"""Ollama Chat - multi-session chat client for a local Ollama server.

Combines httpx for streaming requests, Pydantic for the data model,
FastAPI for a headless HTTP surface, and NiceGUI for the browser UI.

Components:
    - storage: Persisted sessions, prompt templates and settings
    - client: Ollama endpoints and NDJSON stream ingestion
    - chat: Session controller coordinating sends and resets
    - attachments: Image resize and encoding
    - api: HTTP endpoints and SSE streaming
    - ui: Web interface for chat interactions
    - models: Data model and request/response schemas
"""

__version__ = "0.1.0"
