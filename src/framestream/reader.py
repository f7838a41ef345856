"""Stream reader for Content-Length framed JSON messages.

Turns a push-based feed of byte chunks into a sequence of decoded messages.
Each chunk is processed to completion before ``feed`` returns: every message
that is fully buffered is decoded and delivered, in stream order, through the
data event. Malformed headers and bodies are reported through the error event
and skipped; the reader keeps going with the next frame.

Example:
    source: Emitter[bytes] = Emitter()
    with Reader(source) as reader:
        reader.on_data(handle_message)
        reader.on_error(handle_error)
        source.fire(b'Content-Length: 2\\r\\n\\r\\n{}')
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, Protocol

from .buffer import NO_LENGTH, ProtocolBuffer
from .config import ReaderConfig
from .errors import FramingError, MalformedHeaderError, MessageDecodeError
from .events import Emitter, Unsubscribe

logger = logging.getLogger(__name__)


class ChunkSource(Protocol):
    """Anything that pushes byte chunks to subscribed listeners."""

    def subscribe(self, listener: Callable[[bytes], None]) -> Unsubscribe: ...


class Reader:
    """Decodes framed messages from a chunk source.

    The reader subscribes to ``source`` on construction and unsubscribes on
    ``dispose``. Without a source, chunks are pushed with ``feed``.
    """

    def __init__(
        self,
        source: ChunkSource | None = None,
        config: ReaderConfig | None = None,
    ):
        self._config = config or ReaderConfig()
        self._buffer = ProtocolBuffer(self._config.chunk_size)
        self._next_message_length = NO_LENGTH

        self._on_data: Emitter[Any] = Emitter("data")
        self._on_error: Emitter[FramingError] = Emitter("error")

        self._unsubscribers: list[Unsubscribe] = []
        self._disposed = False

        if source is not None:
            self._unsubscribers.append(source.subscribe(self.feed))

    def on_data(self, listener: Callable[[Any], None]) -> Unsubscribe:
        """Register a listener for decoded messages."""
        return self._on_data.subscribe(listener)

    def on_error(self, listener: Callable[[FramingError], None]) -> Unsubscribe:
        """Register a listener for framing and decode errors."""
        return self._on_error.subscribe(listener)

    @property
    def pending_length(self) -> int | None:
        """Declared length of the body being assembled, None while awaiting a header."""
        if self._next_message_length == NO_LENGTH:
            return None
        return self._next_message_length

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def feed(self, data: bytes | bytearray | memoryview | str) -> None:
        """Process one inbound chunk, delivering every complete message."""
        if self._disposed:
            return

        self._buffer.append(data)

        while not self._disposed:
            if self._next_message_length == NO_LENGTH:
                try:
                    length = self._buffer.try_read_content_length()
                except MalformedHeaderError as e:
                    self._report(e)
                    continue
                if length == NO_LENGTH:
                    return
                self._next_message_length = length

            try:
                content = self._buffer.try_read_content(self._next_message_length)
            except UnicodeDecodeError as e:
                self._next_message_length = NO_LENGTH
                self._report(_decode_error(f"Message body is not valid UTF-8: {e}", None, e))
                continue

            if content is None:
                return

            self._next_message_length = NO_LENGTH

            try:
                message = self._decode(content)
            except Exception as e:
                self._report(_decode_error(f"Invalid message body: {e}", content, e))
                continue

            logger.debug(f"Decoded message ({len(content)} chars)")
            self._on_data.fire(message)

    def _decode(self, content: str) -> Any:
        message_type = self._config.message_type
        if message_type is not None:
            return message_type.model_validate_json(content)
        return json.loads(content, parse_constant=_reject_constant)

    def _report(self, error: FramingError) -> None:
        logger.warning(f"Dropping malformed frame: {error}")
        self._on_error.fire(error)

    def dispose(self) -> None:
        """Stop receiving chunks and detach all listeners.

        Partially received frames are discarded. Safe to call more than once.
        """
        if self._disposed:
            return
        self._disposed = True

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        self._on_data.dispose()
        self._on_error.dispose()

        if len(self._buffer):
            logger.debug(f"Discarding {len(self._buffer)} buffered bytes on dispose")
        self._buffer.clear()
        self._next_message_length = NO_LENGTH

    def __enter__(self) -> Reader:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.dispose()


def _reject_constant(name: str) -> Any:
    # json.loads accepts NaN, Infinity and -Infinity, which are not JSON
    raise ValueError(f"{name} is not a valid JSON value")


def _decode_error(message: str, body: str | None, cause: Exception) -> MessageDecodeError:
    error = MessageDecodeError(message, body=body)
    error.__cause__ = cause
    return error
