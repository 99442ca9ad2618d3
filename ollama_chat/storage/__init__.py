"""Local persistence for chat state.

Responsibilities:
    - Key/value blob storage (JSON files, or memory for tests)
    - Session repository with synchronous write-through persistence
    - Prompt template library with built-in seeds
    - Settings singleton load/save with defaults merging

Everything here is synchronous and UI-agnostic.
"""

from ollama_chat.storage.prompts import BUILTIN_PROMPTS, PromptLibrary, slugify
from ollama_chat.storage.sessions import (
    DEFAULT_TITLE,
    SessionRepository,
    derive_title,
    preview,
)
from ollama_chat.storage.settings import load_settings, save_settings
from ollama_chat.storage.store import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "BUILTIN_PROMPTS",
    "DEFAULT_TITLE",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "PromptLibrary",
    "SessionRepository",
    "derive_title",
    "load_settings",
    "preview",
    "save_settings",
    "slugify",
]
