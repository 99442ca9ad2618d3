"""Test package for Ollama Chat.

Unit tests cover isolated logic (stream ingestion, storage, config, images);
integration tests drive the controller and HTTP API against a fake Ollama
server built on httpx.MockTransport.

Structure:
    - unit/: Individual function and class tests
    - integration/: End-to-end workflow tests

Leverages pytest with pytest-asyncio and pytest-check for soft assertions.
"""
