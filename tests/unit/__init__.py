"""Unit tests for individual components in isolation.

Coverage:
    - client/: NDJSON stream ingestion and the Ollama HTTP client
    - storage/: Sessions, prompt templates, settings and blob stores
    - attachments/: Image resize and encoding
    - config and UI formatting helpers
"""
