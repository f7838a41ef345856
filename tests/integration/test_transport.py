"""Integration tests for the asyncio transport adapters.

Uses real asyncio.StreamReader instances and OS pipes, verifying:
- Chunk delivery from StreamReader to Reader
- EOF and read-error handling
- asyncio.Protocol integration via connect_read_pipe
- The read_messages async iterator
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

import pytest

from framestream.config import ReaderConfig
from framestream.errors import FramingError, TransportReadError
from framestream.reader import Reader
from framestream.transport import ReaderProtocol, StreamChunkSource, read_messages

# =============================================================================
# Helpers
# =============================================================================


def make_stream(*chunks: bytes, eof: bool = True) -> asyncio.StreamReader:
    """Create a StreamReader pre-filled with data (simulating a pipe)."""
    stream = asyncio.StreamReader()
    for chunk in chunks:
        stream.feed_data(chunk)
    if eof:
        stream.feed_eof()
    return stream


class FailingStream:
    """Stream whose reads fail after yielding its data."""

    def __init__(self, *chunks: bytes) -> None:
        self._chunks = list(chunks)

    async def read(self, n: int = -1) -> bytes:
        if self._chunks:
            return self._chunks.pop(0)
        raise ConnectionResetError("peer reset")


# =============================================================================
# Tests: StreamChunkSource
# =============================================================================


class TestStreamChunkSource:
    """Test pumping chunks from a StreamReader."""

    @pytest.mark.anyio
    async def test_delivers_chunks_until_eof(self):
        """Every chunk reaches listeners and EOF ends the loop."""
        stream = make_stream(b"abc", b"def")
        source = StreamChunkSource(stream, read_size=2)
        received: list[bytes] = []
        source.subscribe(received.append)

        await source.run()

        assert b"".join(received) == b"abcdef"
        assert all(len(chunk) <= 2 for chunk in received)
        assert source.done is True
        assert source.running is False

    @pytest.mark.anyio
    async def test_drives_reader(self, frame):
        """A reader subscribed to the source decodes the stream."""
        wire = frame({"id": 1}) + frame({"id": 2})
        source = StreamChunkSource(make_stream(wire), read_size=5)
        messages: list[Any] = []

        with Reader(source) as reader:
            reader.on_data(messages.append)
            await source.run()

        assert messages == [{"id": 1}, {"id": 2}]

    @pytest.mark.anyio
    async def test_read_error_is_reported(self, frame):
        """A failing read fires a transport error and stops the source."""
        source = StreamChunkSource(FailingStream(frame("before")))
        messages: list[Any] = []
        errors: list[FramingError] = []
        source.on_error(errors.append)

        with Reader(source) as reader:
            reader.on_data(messages.append)
            await source.run()

        assert messages == ["before"]
        assert len(errors) == 1
        assert isinstance(errors[0], TransportReadError)
        assert isinstance(errors[0].__cause__, ConnectionResetError)
        assert source.done is False

    @pytest.mark.anyio
    async def test_stop_ends_loop_after_current_read(self):
        """stop() from a listener ends the loop before the next read."""
        stream = make_stream(b"first", eof=False)
        source = StreamChunkSource(stream)
        received: list[bytes] = []

        def on_chunk(chunk: bytes) -> None:
            received.append(chunk)
            source.stop()

        source.subscribe(on_chunk)
        await asyncio.wait_for(source.run(), timeout=1)

        assert received == [b"first"]
        assert source.done is False

    @pytest.mark.anyio
    async def test_close_detaches_listeners(self):
        """Closed sources deliver nothing."""
        source = StreamChunkSource(make_stream(b"data"))
        received: list[bytes] = []
        source.subscribe(received.append)

        source.close()
        await source.run()

        assert received == []


# =============================================================================
# Tests: ReaderProtocol
# =============================================================================


class TestReaderProtocol:
    """Test the asyncio.Protocol adapter."""

    @pytest.mark.anyio
    async def test_data_received_feeds_reader(self, frame):
        """Chunks passed to data_received are decoded."""
        protocol = ReaderProtocol()
        messages: list[Any] = []
        protocol.reader.on_data(messages.append)

        wire = frame([1, 2])
        protocol.data_received(wire[:7])
        protocol.data_received(wire[7:])

        assert messages == [[1, 2]]

    @pytest.mark.anyio
    async def test_connection_lost_sets_closed(self):
        """wait_closed returns once the connection is lost."""
        protocol = ReaderProtocol()
        protocol.connection_lost(None)

        await asyncio.wait_for(protocol.wait_closed(), timeout=1)
        assert protocol.exception is None

    @pytest.mark.anyio
    async def test_connection_lost_with_error(self):
        """The loss exception is kept for the caller."""
        protocol = ReaderProtocol()
        error = ConnectionResetError("gone")
        protocol.connection_lost(error)

        assert protocol.exception is error

    @pytest.mark.anyio
    async def test_connection_lost_disposes_reader(self, frame):
        """The owned reader stops delivering once the connection is gone."""
        protocol = ReaderProtocol()
        messages: list[Any] = []
        protocol.reader.on_data(messages.append)

        protocol.data_received(frame("before"))
        protocol.connection_lost(None)
        protocol.data_received(frame("after"))

        assert messages == ["before"]
        assert protocol.reader.disposed is True

    @pytest.mark.anyio
    async def test_with_real_pipe(self, frame):
        """connect_read_pipe delivers framed messages through the protocol."""
        loop = asyncio.get_running_loop()
        read_fd, write_fd = os.pipe()
        messages: list[Any] = []

        with os.fdopen(read_fd, "rb", buffering=0) as pipe:
            transport, protocol = await loop.connect_read_pipe(
                lambda: ReaderProtocol(ReaderConfig(chunk_size=16)), pipe
            )
            protocol.reader.on_data(messages.append)

            os.write(write_fd, frame({"method": "initialized"}))
            os.write(write_fd, b"\r\n" + frame({"method": "exit"}))
            os.close(write_fd)

            await asyncio.wait_for(protocol.wait_closed(), timeout=5)
            transport.close()

        assert messages == [{"method": "initialized"}, {"method": "exit"}]


# =============================================================================
# Tests: read_messages
# =============================================================================


class TestReadMessages:
    """Test the async message iterator."""

    @pytest.mark.anyio
    async def test_yields_messages_until_eof(self, frame):
        """All messages are yielded in order, then iteration stops."""
        wire = b"".join(frame({"n": i}) for i in range(5))
        stream = make_stream(wire[:13], wire[13:])

        messages = [m async for m in read_messages(stream, ReaderConfig(read_size=3))]

        assert messages == [{"n": i} for i in range(5)]

    @pytest.mark.anyio
    async def test_skips_malformed_frames(self, frame):
        """Bad frames are skipped without ending iteration."""
        stream = make_stream(frame("a") + frame(None, raw=b"{bad") + frame("b"))

        messages = [m async for m in read_messages(stream)]

        assert messages == ["a", "b"]

    @pytest.mark.anyio
    async def test_yields_null_payloads(self, frame):
        """A JSON null message is yielded, not mistaken for the end."""
        stream = make_stream(frame(None) + frame(0))

        messages = [m async for m in read_messages(stream)]

        assert messages == [None, 0]

    @pytest.mark.anyio
    async def test_read_error_is_raised_after_messages(self, frame):
        """A failed read surfaces as TransportReadError, unlike a clean EOF."""
        stream = FailingStream(frame("a") + frame("b"))
        messages: list[Any] = []

        with pytest.raises(TransportReadError) as exc_info:
            async for message in read_messages(stream):
                messages.append(message)

        assert messages == ["a", "b"]
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)

    @pytest.mark.anyio
    async def test_empty_stream(self):
        """An empty stream yields nothing."""
        messages = [m async for m in read_messages(make_stream())]

        assert messages == []

    @pytest.mark.anyio
    async def test_early_exit_cancels_reading(self, frame):
        """Breaking out of the loop stops the background read."""
        stream = make_stream(frame("first"), eof=False)
        iterator = read_messages(stream)

        first = await asyncio.wait_for(iterator.__anext__(), timeout=1)
        await iterator.aclose()

        assert first == "first"
