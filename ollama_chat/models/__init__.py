"""Pydantic models for chat state and API payloads.

Provides type safety, validation, and automatic OpenAPI documentation.

Models:
    - schemas: Session, Message, PromptTemplate, Settings and stream records
    - SendRequest: Incoming message for a session
    - SessionUpdate: Partial edit of a session (title, model, system prompt)
    - PromptCreate: New or replaced prompt template
    - SettingsUpdate: Partial edit of the settings singleton
    - ConnectionInfo: Server reachability and advertised models
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ollama_chat.models.schemas import (
    ChatStreamEvent,
    ConnectionState,
    Message,
    ModelInfo,
    PromptTemplate,
    Role,
    Session,
    Settings,
    StreamChunk,
    StreamStatus,
)


class SendRequest(BaseModel):
    """Request payload for sending a message to a session.

    Attributes:
        message: The user's text. May be empty when an image is attached.
        image: Optional base64 image payload; falls back to the pending upload.
    """

    message: str = Field("", description="The user's message")
    image: str | None = Field(None, description="Base64 image payload")

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str) -> str:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class SessionUpdate(BaseModel):
    """Partial update of a session. Omitted fields are left unchanged."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str | None = Field(None, min_length=1)
    model: str | None = None
    system_prompt: str | None = None
    template_key: str | None = Field(None, description="Copy this template's text")


class PromptCreate(BaseModel):
    name: str = Field(..., min_length=1)
    prompt: str = Field(..., min_length=1)


class SettingsUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    endpoint: str | None = None
    default_model: str | None = None


class EndpointTest(BaseModel):
    endpoint: str = Field(..., min_length=1)


class ConnectionInfo(BaseModel):
    """Server reachability and the models it advertises."""

    state: ConnectionState
    models: list[str] = Field(default_factory=list)


__all__ = [
    "ChatStreamEvent",
    "ConnectionInfo",
    "ConnectionState",
    "EndpointTest",
    "Message",
    "ModelInfo",
    "PromptCreate",
    "PromptTemplate",
    "Role",
    "SendRequest",
    "Session",
    "SessionUpdate",
    "Settings",
    "SettingsUpdate",
    "StreamChunk",
    "StreamStatus",
]
