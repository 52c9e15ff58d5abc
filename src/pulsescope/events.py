"""
Observer lists for engine and detector notifications.

A Signal keeps its subscribers in registration order. Connecting returns an
unsubscribe callable, and emitting iterates over a snapshot, so handlers may
disconnect themselves (or others) while a notification is in flight.
"""

from typing import Any, Callable


class Signal:
    """An ordered set of callbacks notified synchronously on emit()."""

    def __init__(self, name: str = ""):
        self.name = name
        self._handlers: dict[Callable[..., Any], None] = {}

    def connect(self, handler: Callable[..., Any]) -> Callable[[], None]:
        """
        Register a handler.

        Registering the same handler twice keeps a single subscription.

        Returns:
            A callable that removes the handler; safe to call repeatedly.
        """
        self._handlers[handler] = None

        def unsubscribe():
            self._handlers.pop(handler, None)

        return unsubscribe

    def disconnect(self, handler: Callable[..., Any]):
        self._handlers.pop(handler, None)

    def emit(self, *args: Any):
        for handler in list(self._handlers):
            handler(*args)

    def clear(self):
        self._handlers.clear()

    def __len__(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        return f"Signal({self.name!r}, handlers={len(self._handlers)})"
