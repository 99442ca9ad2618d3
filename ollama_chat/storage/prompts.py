"""Library of named, reusable system-prompt templates."""

import logging
import re

from pydantic import ValidationError

from ollama_chat.errors import PreconditionError, PromptNotFoundError
from ollama_chat.models.schemas import PromptTemplate
from ollama_chat.storage.store import PROMPTS_KEY, KeyValueStore

logger = logging.getLogger(__name__)

BUILTIN_PROMPTS: list[PromptTemplate] = [
    PromptTemplate(
        key="helpful",
        name="Helpful Assistant",
        prompt=(
            "You are a helpful, harmless, and honest AI assistant. "
            "Provide clear, accurate, and useful responses."
        ),
    ),
    PromptTemplate(
        key="creative",
        name="Creative Writer",
        prompt=(
            "You are a creative writing assistant. Help with storytelling, "
            "character development, and creative expression."
        ),
    ),
    PromptTemplate(
        key="technical",
        name="Technical Expert",
        prompt=(
            "You are a technical expert. Provide detailed, accurate technical "
            "information and help solve complex problems."
        ),
    ),
]


def slugify(name: str) -> str:
    """Derive a template key: lowercase, whitespace runs become one hyphen."""
    return re.sub(r"\s+", "-", name.strip().lower())


class PromptLibrary:
    """Insertion-ordered templates keyed by slug.

    Saving a template whose name slugs to an existing key replaces that
    entry in place.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._templates: dict[str, PromptTemplate] = {}
        self._load()

    def _load(self) -> None:
        for entry in self._store.load(PROMPTS_KEY) or []:
            if isinstance(entry, list) and len(entry) == 2:
                key, record = entry
                record = {"key": key, **record} if isinstance(record, dict) else record
            else:
                record = entry
            try:
                template = PromptTemplate.model_validate(record)
            except ValidationError as e:
                logger.warning(f"Skipping corrupt prompt template: {e}")
                continue
            self._templates[template.key] = template

        if not self._templates:
            for template in BUILTIN_PROMPTS:
                self._templates[template.key] = template.model_copy()
            self._save()
            logger.info("Seeded built-in prompt templates")

    def _save(self) -> None:
        self._store.save(PROMPTS_KEY, [t.to_record() for t in self._templates.values()])

    def upsert(self, name: str, prompt: str) -> PromptTemplate:
        name, prompt = name.strip(), prompt.strip()
        if not name or not prompt:
            raise PreconditionError("Please enter both a name and prompt text.")
        template = PromptTemplate(key=slugify(name), name=name, prompt=prompt)
        if template.key in self._templates:
            logger.info(f"Overwriting prompt template '{template.key}'")
        self._templates[template.key] = template
        self._save()
        return template

    def get(self, key: str) -> PromptTemplate | None:
        return self._templates.get(key)

    def delete(self, key: str) -> None:
        if key not in self._templates:
            raise PromptNotFoundError(key)
        del self._templates[key]
        self._save()

    def list(self) -> list[PromptTemplate]:
        return list(self._templates.values())
