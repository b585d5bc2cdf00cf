"""Event emitter for query notifications."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

# Emitted with the domain query before it is translated
QUERY_EVENT = "mongodb:query"
# Emitted with every materialised collection
COLLECTION_EVENT = "mongodb:collection"


class EventEmitter:
    """Synchronous listener registry.

    Listeners run in registration order. A listener that raises propagates
    its error to the emitter's caller.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Callable[..., Any]]] = {}

    def on(self, event: str, listener: Callable[..., Any]) -> EventEmitter:
        self._listeners.setdefault(event, []).append(listener)
        return self

    def off(self, event: str, listener: Callable[..., Any]) -> EventEmitter:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)
        return self

    def listeners(self, event: str) -> list[Callable[..., Any]]:
        return list(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> None:
        for listener in self.listeners(event):
            listener(*args)
