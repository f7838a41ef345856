"""Growable byte buffer for Content-Length framed messages.

Wire format of one frame:

    Content-Length: <decimal digits>\\r\\n\\r\\n<body bytes>

Spaces, CR and LF before a header are tolerated, as are CR and LF after a
body. The buffer owns a single bytearray whose capacity grows in multiples of
the chunk size; consumed bytes are compacted out of the front in place, so the
storage never shrinks physically.
"""

from __future__ import annotations

from .errors import MalformedHeaderError

DEFAULT_SIZE = 8192

# Returned by try_read_content_length while no complete header is buffered
NO_LENGTH = -1

CONTENT_LENGTH = b"Content-Length: "
HEADER_TERMINATOR = b"\r\n\r\n"

# Longest accepted length value, in digits; always fits a signed 64-bit int
MAX_LENGTH_DIGITS = 18

_BLANK = ord(" ")
_CR = ord("\r")
_LF = ord("\n")

_HEADER_FILLER = frozenset((_BLANK, _CR, _LF))
_BODY_FILLER = frozenset((_CR, _LF))


class ProtocolBuffer:
    """Append-only, self-compacting accumulator of protocol bytes.

    Only the first ``len(buffer)`` bytes of the storage are valid; the rest is
    spare capacity.
    """

    def __init__(self, chunk_size: int = DEFAULT_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._chunk_size = chunk_size
        self._storage = bytearray(chunk_size)
        self._length = 0

    def __len__(self) -> int:
        return self._length

    @property
    def capacity(self) -> int:
        return len(self._storage)

    def getvalue(self) -> bytes:
        """Return a copy of the buffered, unconsumed bytes."""
        return bytes(self._storage[: self._length])

    def append(self, data: bytes | bytearray | memoryview | str) -> None:
        """Copy data to the end of the valid region, growing if needed."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        size = len(data)
        if size == 0:
            return

        end = self._length + size
        if end > len(self._storage):
            # Smallest multiple of the chunk size that holds everything
            new_size = -(-end // self._chunk_size) * self._chunk_size
            storage = bytearray(new_size)
            storage[: self._length] = self._storage[: self._length]
            self._storage = storage

        self._storage[self._length : end] = data
        self._length = end

    def try_read_content_length(self) -> int:
        """Parse and consume the header at the front of the buffer.

        Returns:
            The declared body length, or NO_LENGTH if the header is not
            complete yet (nothing is consumed in that case)

        Raises:
            MalformedHeaderError: A complete header was consumed but its
                prefix or length value is invalid
        """
        storage = self._storage
        current = 0
        while current < self._length and storage[current] in _HEADER_FILLER:
            current += 1

        if self._length < current + len(CONTENT_LENGTH):
            return NO_LENGTH

        cr = storage.find(b"\r", current, self._length)
        if cr < 0 or cr + len(HEADER_TERMINATOR) > self._length:
            return NO_LENGTH
        if storage[cr : cr + len(HEADER_TERMINATOR)] != HEADER_TERMINATOR:
            return NO_LENGTH

        header = bytes(storage[current:cr])
        self._consume(cr + len(HEADER_TERMINATOR))

        if not header.startswith(CONTENT_LENGTH):
            raise MalformedHeaderError(
                "Expected 'Content-Length' header",
                header.decode("utf-8", errors="replace"),
            )

        digits = header[len(CONTENT_LENGTH) :].strip(b" \t")
        # bytes.isdigit only accepts ASCII digits, which also rules out signs
        if not digits.isdigit() or len(digits) > MAX_LENGTH_DIGITS:
            raise MalformedHeaderError(
                f"Invalid Content-Length value: {digits!r}",
                header.decode("utf-8", errors="replace"),
            )
        return int(digits)

    def try_read_content(self, length: int) -> str | None:
        """Consume exactly ``length`` body bytes and return them as text.

        Trailing CR/LF filler after the body is consumed as well.

        Returns:
            The UTF-8 decoded body, or None if fewer than ``length`` bytes are
            buffered (nothing is consumed in that case)

        Raises:
            UnicodeDecodeError: The body is not valid UTF-8. The body bytes
                have already been consumed.
        """
        if length < 0:
            raise ValueError(f"length must be non-negative, got {length}")
        if self._length < length:
            return None

        body = bytes(self._storage[:length])
        end = length
        while end < self._length and self._storage[end] in _BODY_FILLER:
            end += 1
        self._consume(end)

        return body.decode("utf-8")

    def clear(self) -> None:
        """Drop every buffered byte, keeping the allocated capacity."""
        self._length = 0

    def _consume(self, count: int) -> None:
        """Discard the first ``count`` valid bytes, shifting the rest to 0."""
        remaining = self._length - count
        if remaining > 0:
            self._storage[:remaining] = self._storage[count : self._length]
        self._length = max(remaining, 0)
