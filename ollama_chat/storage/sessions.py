"""Session repository: lifecycle, ordering and persistence of chat sessions.

Every mutating call writes the whole session collection to the store before
returning, so a successful call survives an immediate crash.
"""

import logging
import uuid

from pydantic import ValidationError

from ollama_chat.errors import PreconditionError, SessionNotFoundError
from ollama_chat.models.schemas import Message, Role, Session, utc_now
from ollama_chat.storage.store import SESSIONS_KEY, KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"
TITLE_MAX_CHARS = 50
PREVIEW_MAX_CHARS = 60
ELLIPSIS = "..."


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ELLIPSIS if len(text) > limit else text


def derive_title(text: str) -> str:
    """Build a session title from the first user message."""
    return _truncate(text, TITLE_MAX_CHARS)


def preview(session: Session) -> str:
    """Short preview of the last message for list views."""
    if not session.messages:
        return "No messages yet"
    return _truncate(session.messages[-1].content, PREVIEW_MAX_CHARS)


class SessionRepository:
    """Owns the collection of sessions and the active-session marker.

    Args:
        store: Blob store the collection is loaded from and saved to.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._sessions: dict[str, Session] = {}
        self.active_id: str | None = None
        self._load()

    def _load(self) -> None:
        data = self._store.load(SESSIONS_KEY)
        if not data:
            return
        for entry in data:
            # Older blobs hold [id, record] pairs
            record = entry[1] if isinstance(entry, list) and len(entry) == 2 else entry
            try:
                session = Session.model_validate(record)
            except ValidationError as e:
                logger.warning(f"Skipping corrupt session record: {e}")
                continue
            self._sessions[session.id] = session
        logger.info(f"Loaded {len(self._sessions)} sessions")

    def _save(self) -> None:
        self._store.save(
            SESSIONS_KEY, [session.to_record() for session in self._sessions.values()]
        )

    def _require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _commit(self, session: Session) -> Session:
        session.updated_at = utc_now()
        self._save()
        return session

    def create(self, default_model: str = "") -> Session:
        session = Session(id=uuid.uuid4().hex, title=DEFAULT_TITLE, model=default_model)
        self._sessions[session.id] = session
        self._save()
        logger.debug(f"Created session {session.id}")
        return session

    def delete(self, session_id: str) -> bool:
        """Remove a session.

        Returns:
            True if the deleted session was the active one. The active marker
            is cleared in that case.

        Raises:
            SessionNotFoundError: If no session has this id.
        """
        self._require(session_id)
        del self._sessions[session_id]
        was_active = self.active_id == session_id
        if was_active:
            self.active_id = None
        self._save()
        return was_active

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def list(self) -> list[Session]:
        """All sessions, most recently updated first."""
        return sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)

    def select(self, session_id: str | None) -> Session | None:
        if session_id is None:
            self.active_id = None
            return None
        session = self._require(session_id)
        self.active_id = session_id
        return session

    def rename(self, session_id: str, title: str) -> Session:
        session = self._require(session_id)
        session.title = title
        return self._commit(session)

    def set_model(self, session_id: str, model: str) -> Session:
        session = self._require(session_id)
        session.model = model
        return self._commit(session)

    def set_system_prompt(self, session_id: str, prompt: str) -> Session:
        session = self._require(session_id)
        session.system_prompt = prompt
        return self._commit(session)

    def append_message(self, session_id: str, message: Message) -> Session:
        session = self._require(session_id)
        session.messages.append(message)
        return self._commit(session)

    def append_to_message(self, session_id: str, delta: str) -> Message:
        """Extend the in-flight assistant message with a streamed delta.

        Raises:
            SessionNotFoundError: If the session was deleted.
            PreconditionError: If the last message is not an assistant reply.
        """
        session = self._require(session_id)
        if not session.messages or session.messages[-1].role != Role.ASSISTANT:
            raise PreconditionError("No assistant message to extend")
        message = session.messages[-1]
        message.content += delta
        self._commit(session)
        return message

    def clear_messages(self, session_id: str) -> Session:
        session = self._require(session_id)
        session.messages = []
        return self._commit(session)

    def touch(self, session_id: str) -> Session:
        return self._commit(self._require(session_id))
