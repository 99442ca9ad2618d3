"""Pytest fixtures and shared test configuration.

Fixtures:
    - fake_ollama: Scriptable stand-in for the Ollama HTTP API
    - store: Empty in-memory blob store
    - controller: ChatController wired to the fake server, already connected
    - png_bytes: Factory for in-memory PNG images

The fake server runs in-process through httpx.MockTransport, so no network
access is needed.
"""

import asyncio
import io
import json
from collections.abc import AsyncGenerator, AsyncIterator, Callable

import httpx
import pytest
from PIL import Image

from ollama_chat.chat.controller import ChatController
from ollama_chat.client.ollama_client import OllamaClient
from ollama_chat.models.schemas import Settings
from ollama_chat.storage.store import MemoryStore


def ndjson(*contents: str, done: bool = True) -> bytes:
    """Encode a streaming chat body: one record per delta plus a final record."""
    lines = [
        json.dumps({"message": {"role": "assistant", "content": c}, "done": False})
        for c in contents
    ]
    if done:
        lines.append(
            json.dumps(
                {
                    "message": {"role": "assistant", "content": ""},
                    "done": True,
                    "done_reason": "stop",
                    "eval_count": len(contents),
                }
            )
        )
    return "".join(line + "\n" for line in lines).encode()


class ChunkStream(httpx.AsyncByteStream):
    """Response body delivered as the given chunks.

    Args:
        chunks: Byte deliveries, in order.
        error: Raised after the last chunk, to simulate a dropped connection.
        hang: Block forever after the last chunk, until cancelled.
    """

    def __init__(
        self,
        chunks: list[bytes],
        error: Exception | None = None,
        hang: bool = False,
    ) -> None:
        self.chunks = chunks
        self.error = error
        self.hang = hang

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        if self.hang:
            await asyncio.Event().wait()


class FakeOllama:
    """In-process fake of the Ollama endpoints used by the client."""

    def __init__(self) -> None:
        self.reachable = True
        self.models: list[str] = ["llama3", "llava"]
        self.chat_chunks: list[bytes] = [ndjson("Hello", " world")]
        self.chat_status = 200
        self.chat_error: Exception | None = None
        self.chat_hang = False
        self.clear_fails = False
        self.clear_hang = False
        self.probe_timeout = 5.0
        self.requests: list[httpx.Request] = []

    @property
    def chat_bodies(self) -> list[dict]:
        return [
            json.loads(r.content) for r in self.requests if r.url.path == "/api/chat"
        ]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.reachable:
            raise httpx.ConnectError("Connection refused", request=request)

        path = request.url.path
        if path == "/api/version":
            return httpx.Response(200, json={"version": "0.5.7"})
        if path == "/api/tags":
            return httpx.Response(
                200, json={"models": [{"name": name, "size": 1} for name in self.models]}
            )
        if path == "/api/chat":
            body = json.loads(request.content)
            if not body["stream"]:
                if self.clear_hang:
                    await asyncio.Event().wait()
                if self.clear_fails:
                    raise httpx.ConnectError("Connection reset", request=request)
                return httpx.Response(200, json={"done": True})
            if self.chat_status != 200:
                return httpx.Response(self.chat_status, json={"error": "model not found"})
            return httpx.Response(
                200,
                headers={"Content-Type": "application/x-ndjson"},
                stream=ChunkStream(self.chat_chunks, self.chat_error, self.chat_hang),
            )
        return httpx.Response(404)

    def client_factory(self, endpoint: str) -> OllamaClient:
        return OllamaClient(
            endpoint,
            probe_timeout=self.probe_timeout,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def fake_ollama() -> FakeOllama:
    return FakeOllama()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
async def controller(
    fake_ollama: FakeOllama, store: MemoryStore
) -> AsyncGenerator[ChatController]:
    """Connected controller whose new sessions default to llama3."""
    chat = ChatController(
        store,
        client_factory=fake_ollama.client_factory,
        default_settings=Settings(endpoint="http://ollama.test", default_model="llama3"),
    )
    await chat.check_connection()
    yield chat
    await chat.aclose()


@pytest.fixture
def png_bytes() -> Callable[[int, int], bytes]:
    """Return a factory producing PNG bytes of the given size."""

    def make(width: int, height: int) -> bytes:
        buffer = io.BytesIO()
        Image.new("RGB", (width, height), color=(120, 30, 200)).save(buffer, format="PNG")
        return buffer.getvalue()

    return make
