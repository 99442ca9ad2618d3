"""Ollama server access.

Responsibilities:
    - Capability probe and model listing
    - Streaming chat completion with incremental NDJSON ingestion
    - Best-effort server context clearing
    - Connection state tracking

Maintains clean separation from session state and presentation.
"""

from ollama_chat.client.ollama_client import OllamaClient, build_chat_messages
from ollama_chat.client.stream import StreamIngestionEngine, parse_record

__all__ = [
    "OllamaClient",
    "StreamIngestionEngine",
    "build_chat_messages",
    "parse_record",
]
