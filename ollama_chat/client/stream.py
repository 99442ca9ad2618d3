"""Incremental decoder for newline-delimited JSON chat streams.

The server answers a streaming chat request with a chunked body where each
line is one JSON record. Chunk boundaries are arbitrary: a record, or even a
multi-byte character, may be split across two deliveries. The engine keeps
the undelivered tail between deliveries and only parses lines that have
their terminating newline.
"""

import codecs
import logging
from collections.abc import AsyncGenerator, AsyncIterable

from pydantic import ValidationError

from ollama_chat.errors import MalformedRecordError, StreamTransportError
from ollama_chat.models.schemas import ChatStreamEvent

logger = logging.getLogger(__name__)

RECORD_SEPARATOR = "\n"


def parse_record(record: str) -> ChatStreamEvent:
    """Parse one stream record.

    Raises:
        MalformedRecordError: If the record is not a valid stream event.
    """
    try:
        return ChatStreamEvent.model_validate_json(record)
    except ValidationError as e:
        raise MalformedRecordError(f"Unparseable stream record: {record[:80]!r}") from e


class StreamIngestionEngine:
    """Turns a byte stream into content deltas, one pass only.

    Args:
        source: Async iterable of raw body chunks. Optional when the engine is
            driven synchronously through `feed`.
    """

    def __init__(self, source: AsyncIterable[bytes] | None = None) -> None:
        self._source = source
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self._started = False
        self.final_event: ChatStreamEvent | None = None

    @property
    def pending(self) -> str:
        """Text received but not yet terminated by a record separator."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[str]:
        """Append a delivery and return the deltas of every completed record.

        Raises:
            StreamTransportError: If the bytes are not valid UTF-8.
        """
        try:
            self._buffer += self._decoder.decode(chunk)
        except UnicodeDecodeError as e:
            raise StreamTransportError(f"Failed to decode stream: {e}") from e

        *records, self._buffer = self._buffer.split(RECORD_SEPARATOR)

        deltas: list[str] = []
        for record in records:
            record = record.strip()
            if not record:
                continue
            try:
                event = parse_record(record)
            except MalformedRecordError as e:
                logger.debug(f"Skipping record: {e}")
                continue
            if event.done:
                self.final_event = event
            if event.delta:
                deltas.append(event.delta)
        return deltas

    def finish(self) -> None:
        """Flush the decoder at end of input. An unterminated tail is dropped."""
        try:
            self._buffer += self._decoder.decode(b"", final=True)
        except UnicodeDecodeError as e:
            raise StreamTransportError(f"Stream ended mid-character: {e}") from e
        if self._buffer.strip():
            logger.warning(f"Discarding unterminated stream record: {self._buffer[:80]!r}")
        self._buffer = ""

    async def deltas(self) -> AsyncGenerator[str]:
        """Yield content deltas as records complete.

        Deltas already yielded stay delivered if the transport fails; the
        failure is then raised as StreamTransportError.

        Raises:
            RuntimeError: If the engine has already been iterated.
            StreamTransportError: On a connection drop or decode failure.
        """
        if self._source is None:
            raise RuntimeError("Engine has no byte source")
        if self._started:
            raise RuntimeError("Stream ingestion engine is single-pass")
        self._started = True

        try:
            async for chunk in self._source:
                for delta in self.feed(chunk):
                    yield delta
        except StreamTransportError:
            raise
        except (OSError, ValueError) as e:
            raise StreamTransportError(f"Stream interrupted: {e}") from e
        self.finish()

    def __aiter__(self) -> AsyncGenerator[str]:
        return self.deltas()
