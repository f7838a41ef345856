"""asyncio adapters between byte streams and the framing reader.

The adapters only move bytes; opening and closing the underlying pipe,
socket or subprocess stays with the caller.

- StreamChunkSource: pulls from an asyncio.StreamReader and pushes chunks
- ReaderProtocol: asyncio.Protocol that pushes data_received chunks
- read_messages: async iterator of decoded messages from a StreamReader

Example (subprocess stdout):
    proc = await asyncio.create_subprocess_exec(
        "language-server", "--stdio",
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
    )
    async for message in read_messages(proc.stdout):
        print(message)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from .config import DEFAULT_READ_SIZE, ReaderConfig
from .errors import FramingError, TransportReadError
from .events import Emitter, Unsubscribe
from .reader import Reader

logger = logging.getLogger(__name__)

# Marks the end of the message queue in read_messages
_END = object()


class StreamChunkSource:
    """Push-based chunk source reading from an asyncio.StreamReader.

    ``run`` reads until EOF, a read error, or ``stop``; every non-empty chunk
    is delivered to the subscribed listeners in order.
    """

    def __init__(self, stream: asyncio.StreamReader, read_size: int = DEFAULT_READ_SIZE):
        self._stream = stream
        self._read_size = read_size
        self._on_chunk: Emitter[bytes] = Emitter("chunk")
        self._on_error: Emitter[FramingError] = Emitter("transport error")
        self._running = False
        self._done = False

    def subscribe(self, listener: Callable[[bytes], None]) -> Unsubscribe:
        """Register a listener for inbound chunks."""
        return self._on_chunk.subscribe(listener)

    def on_error(self, listener: Callable[[FramingError], None]) -> Unsubscribe:
        """Register a listener for read failures."""
        return self._on_error.subscribe(listener)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def done(self) -> bool:
        """True once the stream reached EOF."""
        return self._done

    async def run(self) -> None:
        """Read chunks until EOF, error, or stop."""
        self._running = True
        logger.info("chunk source started")

        try:
            while self._running:
                try:
                    chunk = await self._stream.read(self._read_size)
                except OSError as e:
                    logger.error(f"Error reading stream: {e}")
                    error = TransportReadError(f"Error reading stream: {e}")
                    error.__cause__ = e
                    self._on_error.fire(error)
                    break

                if not chunk:
                    self._done = True
                    logger.info("stream closed, chunk source stopping")
                    break

                self._on_chunk.fire(chunk)
        finally:
            self._running = False

    def stop(self) -> None:
        """Signal the read loop to stop after the current read."""
        self._running = False

    def close(self) -> None:
        """Stop and detach every listener."""
        self.stop()
        self._on_chunk.dispose()
        self._on_error.dispose()


class ReaderProtocol(asyncio.Protocol):
    """asyncio.Protocol feeding received data into a framing reader.

    Usage:
        loop = asyncio.get_running_loop()
        transport, protocol = await loop.connect_read_pipe(ReaderProtocol, pipe)
        protocol.reader.on_data(handle_message)
        await protocol.wait_closed()
    """

    def __init__(self, config: ReaderConfig | None = None):
        self._on_chunk: Emitter[bytes] = Emitter("chunk")
        self._closed = asyncio.Event()
        self._exception: Exception | None = None
        self.reader = Reader(self, config)

    def subscribe(self, listener: Callable[[bytes], None]) -> Unsubscribe:
        return self._on_chunk.subscribe(listener)

    @property
    def exception(self) -> Exception | None:
        """Error the connection was lost with, if any."""
        return self._exception

    def data_received(self, data: bytes) -> None:
        self._on_chunk.fire(data)

    def eof_received(self) -> bool | None:
        logger.info("peer closed the stream")
        return None

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            logger.error(f"Connection lost: {exc}")
            self._exception = exc
        self.reader.dispose()
        self._on_chunk.dispose()
        self._closed.set()

    async def wait_closed(self) -> None:
        """Wait until the connection is lost."""
        await self._closed.wait()


async def read_messages(
    stream: asyncio.StreamReader,
    config: ReaderConfig | None = None,
) -> AsyncIterator[Any]:
    """Yield decoded messages from a stream until EOF.

    Malformed frames are logged and skipped. A failed read ends iteration by
    raising the TransportReadError once every message decoded before it has
    been yielded.

    Args:
        stream: Source of framed bytes (e.g. a subprocess stdout)
        config: Reader configuration (chunk and read sizes, message model)
    """
    config = config or ReaderConfig()
    queue: asyncio.Queue[Any] = asyncio.Queue()

    source = StreamChunkSource(stream, config.read_size)
    reader = Reader(source, config)
    reader.on_data(queue.put_nowait)
    reader.on_error(lambda error: logger.warning(f"Skipping malformed frame: {error}"))
    failures: list[FramingError] = []
    source.on_error(failures.append)

    task = asyncio.create_task(source.run())
    task.add_done_callback(lambda _: queue.put_nowait(_END))

    try:
        while True:
            item = await queue.get()
            if item is _END:
                if failures:
                    raise failures[0]
                break
            yield item
    finally:
        source.stop()
        if not task.done():
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        reader.dispose()
        source.close()
