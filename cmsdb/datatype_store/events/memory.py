"""
In-memory event publisher for testing.

Records every published event in order so tests and local tooling can
assert on what a write announced.

Invariants:
    - All data is lost on process exit
    - Events are kept in publication order
    - Thread-safe for concurrent publishers
"""

from __future__ import annotations

import threading
from typing import List, Type, TypeVar

from .base import DataTypeEvent

E = TypeVar("E", bound=DataTypeEvent)


class InMemoryEventPublisher:
    """EventPublisher keeping events in a list.

    Example:
        >>> publisher = InMemoryEventPublisher()
        >>> service = DataTypeService(scopes, repository, publisher)
        >>> service.delete(data_type)
        >>> publisher.of_type(DataTypeDeleted)
        [DataTypeDeleted(entity_id=12, ...)]
    """

    def __init__(self) -> None:
        self._events: List[DataTypeEvent] = []
        self._lock = threading.Lock()

    @property
    def events(self) -> List[DataTypeEvent]:
        with self._lock:
            return list(self._events)

    def publish(self, event: DataTypeEvent) -> None:
        with self._lock:
            self._events.append(event)

    def of_type(self, event_type: Type[E]) -> List[E]:
        with self._lock:
            return [event for event in self._events if isinstance(event, event_type)]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
