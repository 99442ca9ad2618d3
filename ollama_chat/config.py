"""Application configuration with environment variable loading.

Pydantic-based configuration for the Ollama chat client. Values come from the
process environment, optionally seeded from a .env file.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from ollama_chat.models.schemas import normalize_endpoint

# Load environment variables from .env file
load_dotenv()

DEFAULT_ENDPOINT = "http://localhost:11434"


class AppConfig(BaseModel):
    """Process-level configuration for the chat client.

    These are deployment knobs. User-editable settings (endpoint, default
    model) are persisted separately and only seeded from here on first run.

    Attributes:
        data_dir: Directory holding the persisted JSON blobs.
        endpoint: Initial Ollama server URL.
        default_model: Initial default model for new sessions.
        probe_timeout: Timeout in seconds for probe and model listing requests.
        max_image_dimension: Longest side allowed for attached images.
        host: Bind address for the HTTP server.
        port: Bind port for the HTTP server.
    """

    data_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("OLLAMA_CHAT_DATA_DIR", "data")),
        description="Directory for persisted chat state",
    )
    endpoint: str = Field(
        default_factory=lambda: os.getenv("OLLAMA_ENDPOINT", DEFAULT_ENDPOINT),
        description="Ollama server base URL",
    )
    default_model: str = Field(
        default_factory=lambda: os.getenv("OLLAMA_DEFAULT_MODEL", ""),
        description="Model assigned to new sessions",
    )
    probe_timeout: float = Field(
        default=5.0,
        gt=0.0,
        le=120.0,
        description="Timeout for capability probe and model listing",
    )
    max_image_dimension: int = Field(
        default=800,
        ge=16,
        le=8192,
        description="Maximum width/height of attached images",
    )
    host: str = Field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(os.getenv("PORT", "8000")))

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        return normalize_endpoint(v)


def get_app_config() -> AppConfig:
    """Create application configuration from environment.

    Returns:
        Configured AppConfig instance.
    """
    return AppConfig()
