"""Exceptions reported by the framing reader.

Everything the reader surfaces through its error event derives from
FramingError, so consumers can subscribe once and branch on the subclass.
"""

from __future__ import annotations


class FramingError(Exception):
    """Base class for framing and decoding failures."""


class MalformedHeaderError(FramingError):
    """A complete header was found but could not be used.

    Raised when the literal prefix does not match or the declared length is
    not a non-negative decimal integer. The header bytes have already been
    consumed when this is raised.
    """

    def __init__(self, message: str, header: str) -> None:
        super().__init__(message)
        self.message = message
        self.header = header


class MessageDecodeError(FramingError):
    """A message body was extracted but could not be decoded.

    ``body`` is the extracted text, or None when the bytes were not valid
    UTF-8. The underlying exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, body: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.body = body


class TransportReadError(FramingError):
    """Reading from the underlying byte stream failed."""
