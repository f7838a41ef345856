"""Streaming reader for Content-Length framed JSON messages.

Reconstructs discrete messages from an arbitrarily chunked byte stream
(pipe, socket, subprocess stdout) and delivers them one at a time:

- ProtocolBuffer: growable, self-compacting byte accumulator
- Reader: header/body state machine with data and error events
- Emitter: multicast observer registry used for all events
- transport: asyncio adapters (StreamReader pump, Protocol, async iterator)
"""

from .buffer import CONTENT_LENGTH, DEFAULT_SIZE, NO_LENGTH, ProtocolBuffer
from .config import ReaderConfig
from .errors import FramingError, MalformedHeaderError, MessageDecodeError, TransportReadError
from .events import Emitter, Unsubscribe
from .reader import ChunkSource, Reader
from .transport import ReaderProtocol, StreamChunkSource, read_messages

__all__ = [
    # Core
    "ProtocolBuffer",
    "Reader",
    "ChunkSource",
    "CONTENT_LENGTH",
    "DEFAULT_SIZE",
    "NO_LENGTH",
    # Events
    "Emitter",
    "Unsubscribe",
    # Configuration
    "ReaderConfig",
    # Errors
    "FramingError",
    "MalformedHeaderError",
    "MessageDecodeError",
    "TransportReadError",
    # asyncio adapters
    "ReaderProtocol",
    "StreamChunkSource",
    "read_messages",
]
