"""Session controller: the single entry point for user intents.

Coordinates the session repository, prompt library and Ollama client.
Presentation layers (the NiceGUI page, the HTTP API) translate their events
into calls on ChatController and render the state it exposes; the controller
itself knows nothing about either.

Send lifecycle per session:

    IDLE -> SENDING (user message stored) -> STREAMING (assistant message
    growing) -> COMPLETE | ERRORED

Only one send may be in flight per session. Each delta is persisted before
the next one is awaited, so a crash loses at most the delta being written.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass, field
from enum import Enum

from ollama_chat.attachments.image_resizer import DEFAULT_MAX_DIMENSION, prepare_image
from ollama_chat.client.ollama_client import OllamaClient
from ollama_chat.config import AppConfig
from ollama_chat.errors import (
    OllamaConnectionError,
    PreconditionError,
    PromptNotFoundError,
    SessionNotFoundError,
    StreamTransportError,
)
from ollama_chat.models.schemas import (
    ConnectionState,
    Message,
    ModelInfo,
    PromptTemplate,
    Role,
    Session,
    Settings,
    StreamChunk,
    StreamStatus,
    normalize_endpoint,
)
from ollama_chat.storage.prompts import PromptLibrary
from ollama_chat.storage.sessions import DEFAULT_TITLE, SessionRepository, derive_title
from ollama_chat.storage.settings import load_settings, save_settings
from ollama_chat.storage.store import JsonFileStore, KeyValueStore

logger = logging.getLogger(__name__)

ERROR_REPLY = (
    "Sorry, I encountered an error while processing your message. "
    "Please check your connection and try again."
)

ClientFactory = Callable[[str], OllamaClient]


class SendState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERRORED = "errored"


IN_FLIGHT = (SendState.SENDING, SendState.STREAMING)


@dataclass
class AppState:
    """Process-wide state shared by the presentation layers.

    Attributes:
        settings: The loaded settings singleton.
        models: Models advertised by the server at the last successful probe.
        pending_image: Prepared image waiting to ride along with the next send.
    """

    settings: Settings
    models: list[ModelInfo] = field(default_factory=list)
    pending_image: str | None = None

    @property
    def model_names(self) -> list[str]:
        return [m.name for m in self.models]


class ChatController:
    """Dispatches chat intents against sessions, prompts and the server.

    Args:
        store: Blob store shared by sessions, prompts and settings.
        client_factory: Builds an OllamaClient for an endpoint URL.
        default_settings: Settings used for keys the store does not carry.
        max_image_dimension: Longest side allowed for attached images.
    """

    def __init__(
        self,
        store: KeyValueStore,
        client_factory: ClientFactory = OllamaClient,
        default_settings: Settings | None = None,
        max_image_dimension: int = DEFAULT_MAX_DIMENSION,
    ) -> None:
        self._store = store
        self._client_factory = client_factory
        self._max_image_dimension = max_image_dimension
        self.sessions = SessionRepository(store)
        self.prompts = PromptLibrary(store)
        self.state = AppState(settings=load_settings(store, default_settings))
        self.client = client_factory(self.state.settings.endpoint)
        self._send_states: dict[str, SendState] = {}
        self._send_tasks: dict[str, asyncio.Task] = {}

    @classmethod
    def from_config(cls, config: AppConfig) -> "ChatController":
        """Build a controller persisting to the configured data directory."""

        def client_factory(endpoint: str) -> OllamaClient:
            return OllamaClient(endpoint, probe_timeout=config.probe_timeout)

        return cls(
            store=JsonFileStore(config.data_dir),
            client_factory=client_factory,
            default_settings=Settings(
                endpoint=config.endpoint, default_model=config.default_model
            ),
            max_image_dimension=config.max_image_dimension,
        )

    # === Connection and settings ===

    @property
    def connection(self) -> ConnectionState:
        return self.client.state

    async def check_connection(self) -> ConnectionState:
        """Probe the server and refresh the model list on success."""
        state = await self.client.probe()
        if state == ConnectionState.CONNECTED:
            self.state.models = await self.client.list_models()
        else:
            self.state.models = []
        return state

    async def test_endpoint(self, endpoint: str) -> bool:
        """Probe an endpoint without changing the active connection."""
        try:
            probe_client = self._client_factory(normalize_endpoint(endpoint))
        except ValueError as e:
            logger.warning(f"Endpoint test rejected {endpoint!r}: {e}")
            return False
        try:
            return await probe_client.probe() == ConnectionState.CONNECTED
        finally:
            await probe_client.aclose()

    async def update_settings(
        self,
        endpoint: str | None = None,
        default_model: str | None = None,
    ) -> Settings:
        """Save settings, reconnecting when the endpoint changes.

        Nothing is saved and the live client is kept if the new endpoint is
        unusable.

        Raises:
            PreconditionError: If a send is in flight.
            ValueError: If the endpoint is not a well-formed http(s) URL.
        """
        if any(state in IN_FLIGHT for state in self._send_states.values()):
            raise PreconditionError("Cannot change settings while a message is being sent")

        updates = {}
        if endpoint is not None:
            updates["endpoint"] = endpoint
        if default_model is not None:
            updates["default_model"] = default_model
        settings = Settings.model_validate({**self.state.settings.model_dump(), **updates})
        new_client = None
        if settings.endpoint != self.client.endpoint:
            new_client = self._client_factory(settings.endpoint)
        try:
            save_settings(self._store, settings)
        except OSError:
            if new_client is not None:
                await new_client.aclose()
            raise

        if new_client is not None:
            await self.client.aclose()
            self.client = new_client
        self.state.settings = settings
        await self.check_connection()
        return settings

    # === Sessions ===

    @property
    def active_session(self) -> Session | None:
        if self.sessions.active_id is None:
            return None
        return self.sessions.get(self.sessions.active_id)

    def list_sessions(self) -> list[Session]:
        return self.sessions.list()

    def new_session(self) -> Session:
        session = self.sessions.create(self.state.settings.default_model)
        self.sessions.select(session.id)
        return session

    def select(self, session_id: str) -> Session:
        return self.sessions.select(session_id)

    def delete(self, session_id: str) -> bool:
        """Delete a session, cancelling its send. Returns True if it was active."""
        self.cancel(session_id)
        self._send_states.pop(session_id, None)
        return self.sessions.delete(session_id)

    def rename(self, session_id: str, title: str) -> Session:
        return self.sessions.rename(session_id, title)

    def set_model(self, session_id: str, model: str) -> Session:
        return self.sessions.set_model(session_id, model)

    def apply_system_prompt(self, session_id: str, prompt: str) -> Session:
        return self.sessions.set_system_prompt(session_id, prompt)

    def apply_template(self, session_id: str, key: str) -> Session:
        """Copy a template's text into the session's system prompt."""
        template = self.prompts.get(key)
        if template is None:
            raise PromptNotFoundError(key)
        return self.sessions.set_system_prompt(session_id, template.prompt)

    def save_template(self, name: str, prompt: str) -> PromptTemplate:
        return self.prompts.upsert(name, prompt)

    # === Images ===

    def attach_image(self, raw: bytes) -> str:
        """Prepare an image and hold it for the next send.

        Raises:
            ImageProcessingError: If the bytes are not a usable image.
        """
        self.state.pending_image = prepare_image(raw, self._max_image_dimension)
        return self.state.pending_image

    def clear_image(self) -> None:
        self.state.pending_image = None

    # === Sending ===

    def send_state(self, session_id: str) -> SendState:
        return self._send_states.get(session_id, SendState.IDLE)

    def is_sending(self, session_id: str) -> bool:
        return self.send_state(session_id) in IN_FLIGHT

    def check_send(self, session_id: str, text: str, image: str | None = None) -> Session:
        """Validate a send without mutating anything.

        Raises:
            SessionNotFoundError: If the session does not exist.
            PreconditionError: If the message is empty, the server is not
                connected, no model is assigned, or a send is in flight.
        """
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if not text.strip() and not image:
            raise PreconditionError("Message is empty")
        if not self.client.is_connected:
            raise PreconditionError("Not connected to Ollama server. Please check your settings.")
        if not session.model:
            raise PreconditionError("Please select a model in the settings.")
        if self.is_sending(session_id):
            raise PreconditionError("A message is already being sent in this session")
        return session

    async def stream_send(
        self,
        session_id: str,
        text: str,
        image: str | None = None,
    ) -> AsyncGenerator[StreamChunk]:
        """Send a user message and stream the assistant reply.

        Args:
            session_id: Target session.
            text: The user's message.
            image: Optional base64 image payload.

        Yields:
            A RECEIVED event once the user message is stored, one GENERATING
            event per delta, then a final event with done=True.

        Raises:
            SessionNotFoundError, PreconditionError: Before anything is stored.
            asyncio.CancelledError: If the send was cancelled. Content
                received so far is kept.
        """
        text = text.strip()
        session = self.check_send(session_id, text, image)
        self._send_states[session_id] = SendState.SENDING
        task = asyncio.current_task()
        if task is not None:
            self._send_tasks[session_id] = task

        try:
            is_first = not session.messages
            self.sessions.append_message(
                session_id,
                Message(role=Role.USER, content=text, images=[image] if image else None),
            )
            if is_first and text:
                self.sessions.rename(session_id, derive_title(text))
            yield StreamChunk(status=StreamStatus.RECEIVED)

            stream = self.client.stream_chat(
                session.model, session.messages, session.system_prompt or None
            )
            try:
                async for delta in stream:
                    if self._send_states.get(session_id) == SendState.SENDING:
                        self.sessions.append_message(session_id, Message(role=Role.ASSISTANT))
                        self._send_states[session_id] = SendState.STREAMING
                    self.sessions.append_to_message(session_id, delta)
                    yield StreamChunk(content=delta, status=StreamStatus.GENERATING)
            finally:
                await stream.aclose()

        except (OllamaConnectionError, StreamTransportError) as e:
            logger.error(f"Error sending message in session {session_id}: {e}")
            self._send_states[session_id] = SendState.ERRORED
            if session_id in self.sessions:
                self.sessions.append_message(
                    session_id,
                    Message(role=Role.ASSISTANT, content=ERROR_REPLY, is_error=True),
                )
            yield StreamChunk(done=True, status=StreamStatus.ERROR, error=str(e))
            return
        except (SessionNotFoundError, PreconditionError) as e:
            # Session deleted or reset underneath the stream
            logger.info(f"Stopped streaming into session {session_id}: {e}")
            self._send_states.pop(session_id, None)
            yield StreamChunk(done=True, status=StreamStatus.CANCELLED)
            return
        finally:
            self._send_tasks.pop(session_id, None)
            if self._send_states.get(session_id) in IN_FLIGHT:
                # Cancelled or abandoned by the consumer
                self._send_states[session_id] = SendState.IDLE

        if session_id in self.sessions:
            self._send_states[session_id] = SendState.COMPLETE
            self.sessions.touch(session_id)
        yield StreamChunk(done=True, status=StreamStatus.COMPLETE)

    async def send(self, session_id: str, text: str, image: str | None = None) -> Session | None:
        """Send a message and wait for the reply to settle.

        Returns:
            The updated session, or None if it was deleted mid-stream.
        """
        async for _ in self.stream_send(session_id, text, image):
            pass
        return self.sessions.get(session_id)

    async def submit(self, text: str, image: str | None = None) -> Session | None:
        """Send on the active session, creating one if none is active.

        Uses and clears the pending image when no image is passed.
        """
        image = image or self.state.pending_image
        if not text.strip() and not image:
            raise PreconditionError("Message is empty")
        session = self.active_session or self.new_session()
        self.check_send(session.id, text, image)
        self.state.pending_image = None
        return await self.send(session.id, text, image)

    def cancel(self, session_id: str) -> bool:
        """Cancel the in-flight send of a session, keeping partial content.

        Returns:
            True if a send was running and has been asked to stop.
        """
        task = self._send_tasks.get(session_id)
        if task is None or task.done() or task is asyncio.current_task():
            return False
        logger.info(f"Cancelling send in session {session_id}")
        return task.cancel()

    async def reset(self, session_id: str) -> Session:
        """Clear a session's history locally and, best effort, on the server.

        The local reset happens whatever the server call does.
        """
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        self.cancel(session_id)

        try:
            await self.client.clear_context(session.model)
        except Exception as e:
            logger.warning(f"Could not clear server context: {e}")

        self.sessions.clear_messages(session_id)
        session = self.sessions.rename(session_id, DEFAULT_TITLE)
        self._send_states.pop(session_id, None)
        if session_id == self.sessions.active_id:
            self.state.pending_image = None
        return session

    async def aclose(self) -> None:
        for task in list(self._send_tasks.values()):
            task.cancel()
        await self.client.aclose()
