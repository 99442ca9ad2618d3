"""Load and save the settings singleton."""

import logging

from pydantic import ValidationError

from ollama_chat.models.schemas import Settings
from ollama_chat.storage.store import SETTINGS_KEY, KeyValueStore

logger = logging.getLogger(__name__)


def load_settings(store: KeyValueStore, defaults: Settings | None = None) -> Settings:
    """Merge the persisted settings blob shallowly over the defaults.

    Args:
        store: Blob store to read from.
        defaults: Values used for keys the blob does not carry.

    Returns:
        The merged settings. Falls back to the defaults on a corrupt blob.
    """
    defaults = defaults or Settings()
    saved = store.load(SETTINGS_KEY)
    if not isinstance(saved, dict):
        return defaults.model_copy()

    merged = {**defaults.to_record(), **saved}
    try:
        return Settings.model_validate(merged)
    except ValidationError as e:
        logger.warning(f"Ignoring invalid saved settings: {e}")
        return defaults.model_copy()


def save_settings(store: KeyValueStore, settings: Settings) -> None:
    store.save(SETTINGS_KEY, settings.to_record())
