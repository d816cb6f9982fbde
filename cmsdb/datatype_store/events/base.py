"""
Base protocol and types for change notifications.

Other subsystems (search indexing, distributed cache refreshers) react
to data type changes through an EventPublisher. This module defines the
protocol and the event payloads; it does not care who subscribes.

Invariants:
    - Events are published only after the writing scope committed
    - Payloads carry ids and paths, never live database handles
    - Moves publish one event listing every affected node

How to change safely:
    - Add new event types rather than changing existing payloads
    - Keep payloads serializable via to_dict()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Protocol, Tuple, runtime_checkable
from uuid import UUID

from ..models import MoveEventInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DataTypeEvent:
    """Base for all change notifications."""

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class DataTypeSaved(DataTypeEvent):
    """A data type or container was created or updated."""

    entity_id: int
    key: UUID
    object_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "saved",
            "entity_id": self.entity_id,
            "key": str(self.key),
            "object_type": self.object_type,
        }


@dataclass(frozen=True)
class DataTypeDeleted(DataTypeEvent):
    """A data type or container was deleted."""

    entity_id: int
    key: UUID
    object_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "deleted",
            "entity_id": self.entity_id,
            "key": str(self.key),
            "object_type": self.object_type,
        }


@dataclass(frozen=True)
class MovedNode:
    """Serializable part of a MoveEventInfo."""

    entity_id: int
    original_path: str
    original_parent_id: int
    path: str
    parent_id: int

    @classmethod
    def from_move_info(cls, info: MoveEventInfo) -> MovedNode:
        return cls(
            entity_id=info.entity.id,
            original_path=info.original_path,
            original_parent_id=info.original_parent_id,
            path=info.entity.path,
            parent_id=info.entity.parent_id,
        )


@dataclass(frozen=True)
class DataTypeMoved(DataTypeEvent):
    """A node and its descendants changed place in the tree."""

    moves: Tuple[MovedNode, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "moved",
            "moves": [
                {
                    "entity_id": move.entity_id,
                    "original_path": move.original_path,
                    "original_parent_id": move.original_parent_id,
                    "path": move.path,
                    "parent_id": move.parent_id,
                }
                for move in self.moves
            ],
        }


@dataclass(frozen=True)
class PreValuesSaved(DataTypeEvent):
    """A data type's pre-values were rewritten."""

    entity_id: int

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "pre_values_saved", "entity_id": self.entity_id}


@runtime_checkable
class EventPublisher(Protocol):
    """Receives change notifications after commit."""

    def publish(self, event: DataTypeEvent) -> None:
        ...


class LoggingEventPublisher:
    """Publisher that only logs events.

    Useful as a default when nothing subscribes.
    """

    def publish(self, event: DataTypeEvent) -> None:
        logger.info(f"Data type event: {type(event).__name__}", extra=event.to_dict())
