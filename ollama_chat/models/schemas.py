from datetime import UTC, datetime
from enum import Enum

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(UTC)


def normalize_endpoint(value: str) -> str:
    """Validate a server base URL and drop any trailing slash.

    Raises:
        ValueError: If the value is not a well-formed http(s) URL with a host.
    """
    value = value.strip().rstrip("/")
    if not value.startswith(("http://", "https://")):
        raise ValueError("Endpoint must be an http:// or https:// URL")
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as e:
        raise ValueError(f"Invalid endpoint URL: {e}") from e
    if not url.host:
        raise ValueError("Endpoint URL has no host")
    return value


class Role(str, Enum):
    """Speaker of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ConnectionState(str, Enum):
    """Reachability of the inference server, derived from the last probe."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class StreamStatus(str, Enum):
    """Status values for streaming updates."""

    RECEIVED = "received"
    GENERATING = "generating"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ERROR = "error"


class StoredModel(BaseModel):
    """Base for records persisted as camelCase JSON blobs."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Message(StoredModel):
    """A single chat message in a session.

    Attributes:
        role: The speaker (system, user, or assistant).
        content: The message text. Grows in place while an assistant reply streams.
        timestamp: When the message was created.
        images: Base64 image payloads attached to the message.
        is_error: Set on the canned assistant reply injected after a failed send.
    """

    role: Role
    content: str = ""
    timestamp: datetime = Field(default_factory=utc_now)
    images: list[str] | None = None
    is_error: bool | None = None


class Session(StoredModel):
    """One conversation thread with its own history, model and system prompt."""

    id: str
    title: str = "New Chat"
    model: str = ""
    messages: list[Message] = Field(default_factory=list)
    system_prompt: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class PromptTemplate(StoredModel):
    """A named reusable system prompt."""

    key: str
    name: str
    prompt: str


class Settings(StoredModel):
    """User-editable settings singleton."""

    endpoint: str = "http://localhost:11434"
    default_model: str = ""

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        return normalize_endpoint(v)


class ModelInfo(BaseModel):
    """One entry of the server's advertised model list."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    size: int | None = None
    modified_at: str | None = None
    digest: str | None = None


class EventMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str | None = None
    content: str | None = None


class ChatStreamEvent(BaseModel):
    """One newline-delimited record of a streaming chat response.

    Attributes:
        message: Incremental message fragment, absent on some records.
        done: Set on the final record of the stream.
        done_reason: Why generation stopped, when reported.
        eval_count: Number of generated tokens (final record only).
        total_duration: Total generation time in nanoseconds (final record only).
    """

    model_config = ConfigDict(extra="ignore")

    message: EventMessage | None = None
    done: bool = False
    done_reason: str | None = None
    eval_count: int | None = None
    total_duration: int | None = None

    @property
    def delta(self) -> str:
        if self.message is None or not self.message.content:
            return ""
        return self.message.content


class StreamChunk(BaseModel):
    """A progress event emitted while a send is in flight.

    Attributes:
        content: The text delta carried by this event (may be empty).
        done: Whether this is the final event of the send.
        status: Current processing status.
        error: Error message if something went wrong.
    """

    content: str = ""
    done: bool = False
    status: StreamStatus | None = None
    error: str | None = None
