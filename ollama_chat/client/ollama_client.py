"""HTTP client for a local Ollama server.

Wraps the endpoints the chat core needs (version probe, model listing,
streaming chat, context clear) and tracks the connection state derived from
the last probe.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Iterable

import httpx

from ollama_chat.client.stream import StreamIngestionEngine
from ollama_chat.errors import OllamaConnectionError, StreamTransportError
from ollama_chat.models.schemas import ConnectionState, Message, ModelInfo, Role

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 5.0


def build_chat_messages(
    messages: Iterable[Message],
    system_prompt: str | None = None,
) -> list[dict]:
    """Build the `messages` array of a chat request.

    The system prompt, when set, goes first. Error-flagged replies are local
    annotations and are left out, so the history is every message except
    those. A retry after a failed send therefore carries two consecutive
    user messages.
    """
    payload: list[dict] = []
    if system_prompt:
        payload.append({"role": Role.SYSTEM.value, "content": system_prompt})
    for message in messages:
        if message.is_error:
            continue
        entry: dict = {"role": message.role.value, "content": message.content}
        if message.images:
            entry["images"] = list(message.images)
        payload.append(entry)
    return payload


class OllamaClient:
    """Async client for one Ollama endpoint.

    Args:
        endpoint: Server base URL, e.g. http://localhost:11434.
        probe_timeout: Timeout in seconds for probe and model listing.
        transport: Optional httpx transport, used to fake the server in tests.

    Raises:
        ValueError: If the endpoint is not a usable URL.
    """

    def __init__(
        self,
        endpoint: str,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.state = ConnectionState.DISCONNECTED
        self._probe_timeout = probe_timeout
        try:
            self._http = httpx.AsyncClient(
                base_url=self.endpoint,
                timeout=httpx.Timeout(None, connect=probe_timeout),
                transport=transport,
            )
        except httpx.InvalidURL as e:
            raise ValueError(f"Invalid endpoint URL {endpoint!r}: {e}") from e

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    async def probe(self) -> ConnectionState:
        """Check that the server answers the version endpoint.

        Never raises; an unreachable server is reported as DISCONNECTED.
        """
        self.state = ConnectionState.CONNECTING
        try:
            response = await self._http.get("/api/version", timeout=self._probe_timeout)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Connection check failed for {self.endpoint}: {e}")
            self.state = ConnectionState.DISCONNECTED
        else:
            logger.info(f"Connected to {self.endpoint}")
            self.state = ConnectionState.CONNECTED
        return self.state

    async def list_models(self) -> list[ModelInfo]:
        """Return the models the server advertises, or [] on failure."""
        try:
            response = await self._http.get("/api/tags", timeout=self._probe_timeout)
            response.raise_for_status()
            entries = response.json().get("models") or []
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"Error loading models: {e}")
            return []

        models: list[ModelInfo] = []
        for entry in entries:
            try:
                models.append(ModelInfo.model_validate(entry))
            except ValueError:
                logger.debug(f"Skipping malformed model entry: {entry!r}")
        return models

    async def stream_chat(
        self,
        model: str,
        messages: Iterable[Message],
        system_prompt: str | None = None,
    ) -> AsyncGenerator[str]:
        """Stream a chat completion as content deltas.

        Closing the generator closes the underlying response.

        Args:
            model: Model identifier.
            messages: Conversation history, oldest first.
            system_prompt: Optional system message prepended to the history.

        Yields:
            Content deltas in arrival order.

        Raises:
            OllamaConnectionError: If the request fails before streaming starts.
            StreamTransportError: If the stream breaks after it started.
        """
        body = {
            "model": model,
            "messages": build_chat_messages(messages, system_prompt),
            "stream": True,
        }
        request = self._http.build_request("POST", "/api/chat", json=body)
        try:
            response = await self._http.send(request, stream=True)
        except httpx.HTTPError as e:
            self.state = ConnectionState.DISCONNECTED
            raise OllamaConnectionError(f"Connection failed: {e}") from e

        try:
            if response.is_error:
                await response.aread()
                raise OllamaConnectionError(
                    f"HTTP error! status: {response.status_code}",
                    status_code=response.status_code,
                )

            engine = StreamIngestionEngine(response.aiter_bytes())
            try:
                async for delta in engine:
                    yield delta
            except httpx.HTTPError as e:
                raise StreamTransportError(f"Stream interrupted: {e}") from e

            if engine.final_event is not None:
                logger.debug(
                    f"Stream finished ({engine.final_event.done_reason}, "
                    f"{engine.final_event.eval_count} tokens)"
                )
        finally:
            await response.aclose()

    async def clear_context(self, model: str) -> None:
        """Ask the server to drop cached context for a model.

        Best effort: failures are logged and swallowed, and the request is
        abandoned after the probe timeout so callers never wait on it.
        """
        if not self.is_connected or not model:
            return
        body = {"model": model, "messages": [], "stream": False, "keep_alive": 0}
        try:
            response = await asyncio.wait_for(
                self._http.post("/api/chat", json=body, timeout=self._probe_timeout),
                timeout=self._probe_timeout,
            )
            response.raise_for_status()
        except TimeoutError:
            logger.warning(f"Timed out clearing server context for {model}")
        except httpx.HTTPError as e:
            logger.warning(f"Could not clear server context: {e}")

    async def aclose(self) -> None:
        await self._http.aclose()
