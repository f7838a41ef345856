"""framestream CLI.

Decodes a Content-Length framed byte stream and prints each message as one
JSON line on stdout. Diagnostics go to stderr.

Usage:
    framestream                           # Decode stdin
    framestream capture.bin               # Decode a file
    framestream --fail-on-error dump.bin  # Stop at the first bad frame
    some-server --stdio | framestream     # Decode a live pipe
"""

from __future__ import annotations

import json
import logging
import sys
from typing import IO, Any

import click
from pydantic import BaseModel

from .config import ReaderConfig
from .errors import FramingError
from .reader import Reader

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def format_message(message: Any) -> str:
    """Render a decoded message as a single compact JSON line."""
    if isinstance(message, BaseModel):
        return message.model_dump_json()
    return json.dumps(message, ensure_ascii=False, separators=(",", ":"))


@click.command()
@click.argument("source", type=click.File("rb"), default="-")
@click.option("--chunk-size", type=click.IntRange(min=1), help="Buffer growth increment in bytes")
@click.option("--read-size", type=click.IntRange(min=1), help="Maximum bytes per read")
@click.option("--fail-on-error", is_flag=True, help="Exit with status 1 at the first bad frame")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level for stderr diagnostics",
)
def main(
    source: IO[bytes],
    chunk_size: int | None,
    read_size: int | None,
    fail_on_error: bool,
    log_level: str,
) -> None:
    """Decode Content-Length framed JSON messages from SOURCE (default: stdin)."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = ReaderConfig.from_env()
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    if chunk_size is not None:
        config.chunk_size = chunk_size
    if read_size is not None:
        config.read_size = read_size

    errors: list[FramingError] = []
    reader = Reader(config=config)

    def on_error(error: FramingError) -> None:
        errors.append(error)
        click.echo(f"Error: {error}", err=True)
        if fail_on_error:
            reader.dispose()

    reader.on_data(lambda message: click.echo(format_message(message)))
    reader.on_error(on_error)

    read = getattr(source, "read1", source.read)
    try:
        while not reader.disposed:
            chunk = read(config.read_size)
            if not chunk:
                break
            reader.feed(chunk)
    finally:
        if reader.buffered:
            click.echo(f"Warning: {reader.buffered} trailing bytes did not form a frame", err=True)
        reader.dispose()

    if errors and fail_on_error:
        sys.exit(1)


if __name__ == "__main__":
    main()
