"""Multicast event emitter.

Listeners register with ``subscribe`` and receive every value passed to
``fire`` in registration order. Registration returns an unsubscribe function.
A listener that raises is logged and skipped; it never breaks delivery to the
others or reaches the code that fired the event.

Usage:
    emitter: Emitter[bytes] = Emitter()
    unsubscribe = emitter.subscribe(lambda chunk: print(chunk))
    emitter.fire(b"hello")
    unsubscribe()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]
Unsubscribe = Callable[[], None]


class Emitter(Generic[T]):
    """Synchronous observer registry for a single event."""

    def __init__(self, name: str = "event") -> None:
        self._name = name
        self._listeners: list[tuple[object, Listener[T]]] = []
        self._disposed = False

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, listener: Listener[T]) -> Unsubscribe:
        """Register a listener.

        Args:
            listener: Called with each fired value

        Returns:
            Function that removes the listener; safe to call more than once
        """
        if self._disposed:
            logger.debug(f"Ignoring subscription to disposed emitter {self._name}")
            return _noop

        # Registrations are removed by token, never by listener equality
        token = object()
        self._listeners.append((token, listener))

        def unsubscribe() -> None:
            for index, (registered, _) in enumerate(self._listeners):
                if registered is token:
                    del self._listeners[index]
                    return

        return unsubscribe

    def fire(self, value: T) -> None:
        """Deliver a value to all current listeners."""
        if self._disposed:
            return

        # Copy so listeners may unsubscribe while being notified
        for _, listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception(f"Error in listener for {self._name}")

    def dispose(self) -> None:
        """Detach every listener. Further fires are ignored."""
        self._listeners.clear()
        self._disposed = True


def _noop() -> None:
    pass
