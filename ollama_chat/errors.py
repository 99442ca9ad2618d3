"""Error taxonomy for the chat core.

Every failure the core can report derives from OllamaChatError so callers can
catch the whole family at the controller boundary.
"""


class OllamaChatError(Exception):
    """Base class for all chat core errors."""

    pass


class OllamaConnectionError(OllamaChatError):
    """Raised when the server cannot be reached or a request is refused.

    Covers the capability probe and the initial streaming request, before any
    response byte has been consumed.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StreamTransportError(OllamaChatError):
    """Raised when an open stream fails mid-flight (drop or decode failure)."""

    pass


class MalformedRecordError(OllamaChatError):
    """Raised when a single stream record cannot be parsed."""

    pass


class PreconditionError(OllamaChatError):
    """Raised when an operation is attempted in a state that forbids it."""

    pass


class NotFoundError(OllamaChatError):
    """Raised when an operation targets an absent record."""

    pass


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class PromptNotFoundError(NotFoundError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Prompt template not found: {key}")
        self.key = key
