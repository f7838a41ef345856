"""Pytest configuration and shared fixtures."""

import json

import pytest


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def frame():
    """Return a function that frames a JSON-serializable payload."""

    def _frame(payload, *, raw: bytes | None = None) -> bytes:
        body = raw if raw is not None else json.dumps(payload).encode("utf-8")
        return b"Content-Length: " + str(len(body)).encode("ascii") + b"\r\n\r\n" + body

    return _frame
