"""
Event module for the data type store.

This module provides:
- Event payloads for saves, deletes, moves and pre-value changes
- The EventPublisher protocol
- LoggingEventPublisher (default) and InMemoryEventPublisher (tests)
"""

from .base import (
    DataTypeDeleted,
    DataTypeEvent,
    DataTypeMoved,
    DataTypeSaved,
    EventPublisher,
    LoggingEventPublisher,
    MovedNode,
    PreValuesSaved,
)
from .memory import InMemoryEventPublisher

__all__ = [
    "DataTypeEvent",
    "DataTypeSaved",
    "DataTypeDeleted",
    "DataTypeMoved",
    "MovedNode",
    "PreValuesSaved",
    "EventPublisher",
    "LoggingEventPublisher",
    "InMemoryEventPublisher",
]
