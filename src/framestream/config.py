"""Reader configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

from pydantic import BaseModel

DEFAULT_CHUNK_SIZE = 8192
DEFAULT_READ_SIZE = 8192

ENV_CHUNK_SIZE = "FRAMESTREAM_CHUNK_SIZE"
ENV_READ_SIZE = "FRAMESTREAM_READ_SIZE"


@dataclass
class ReaderConfig:
    """Configuration for a framing reader and its transport adapters."""

    # Initial buffer capacity and growth increment
    chunk_size: int = DEFAULT_CHUNK_SIZE

    # Maximum bytes requested per transport read
    read_size: int = DEFAULT_READ_SIZE

    # Validate each decoded body into this model instead of returning raw JSON
    message_type: type[BaseModel] | None = None

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.read_size <= 0:
            raise ValueError(f"read_size must be positive, got {self.read_size}")

    @classmethod
    def from_env(cls, message_type: type[BaseModel] | None = None) -> ReaderConfig:
        """Build a config from FRAMESTREAM_* environment variables.

        Unset variables fall back to the defaults. Values that are not
        positive integers raise ValueError.
        """
        return cls(
            chunk_size=_int_from_env(ENV_CHUNK_SIZE, DEFAULT_CHUNK_SIZE),
            read_size=_int_from_env(ENV_READ_SIZE, DEFAULT_READ_SIZE),
            message_type=message_type,
        )


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
