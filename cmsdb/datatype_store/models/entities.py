"""
Entity definitions for the data type store.

This module defines the tree-placed aggregates persisted by the
repositories:
- TreeEntity: Base class for anything stored as a node row
- DataTypeDefinition: A named, configurable data type
- EntityContainer: A folder node that groups data types
- ContentType / PropertyGroup / PropertyType: The structures that
  reference data types through their property definitions
- MoveEventInfo: What a move changed, per affected entity

Invariants:
    - path is the comma-joined ancestor chain ending with the entity id
    - level equals the number of path segments (the root sentinel is 1)
    - key is assigned once and never changes
    - id is 0 until the entity is first persisted

How to change safely:
    - New public attributes are dirty-tracked automatically
    - Private attributes (leading underscore) are never tracked
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, Iterator, List, Optional, Set

ROOT_ID = -1
ROOT_PATH = "-1"
ROOT_LEVEL = 1

_MISSING = object()


class ObjectType(Enum):
    """Node kind discriminator stored in nodes.node_object_type."""

    ROOT = "root"
    DATA_TYPE = "data_type"
    DATA_TYPE_CONTAINER = "data_type_container"
    DOCUMENT_TYPE = "document_type"
    MEDIA_TYPE = "media_type"
    MEMBER_TYPE = "member_type"


CONTENT_TYPE_KINDS = (
    ObjectType.DOCUMENT_TYPE,
    ObjectType.MEDIA_TYPE,
    ObjectType.MEMBER_TYPE,
)


class DatabaseType(Enum):
    """Storage column a data type's values are persisted into."""

    NTEXT = "ntext"
    NVARCHAR = "nvarchar"
    INTEGER = "integer"
    DECIMAL = "decimal"
    DATE = "date"


@dataclass(eq=False)
class TreeEntity:
    """Base for entities stored as a row in the nodes table.

    Assigning a different value to a public attribute marks it dirty
    until reset_dirty_properties() is called. Repositories use the dirty
    set to decide, for instance, whether placement must be recomputed.

    Attributes:
        name: Display name (unique per kind for data types)
        parent_id: Parent node id (ROOT_ID for the root)
        id: Store-assigned identity, 0 when new
        key: Immutable external unique key
        path: Comma-joined ancestor id chain, self included
        level: Depth, the root sentinel being 1
        sort_order: Rank among siblings
        create_date: Set on first persistence
        update_date: Set on every persistence
        delete_date: Set on the in-memory instance after delete
    """

    object_type: ClassVar[ObjectType] = ObjectType.ROOT

    name: str = ""
    parent_id: int = ROOT_ID
    id: int = 0
    key: uuid.UUID = field(default_factory=uuid.uuid4)
    path: str = ""
    level: int = 0
    sort_order: int = 0
    create_date: Optional[datetime] = None
    update_date: Optional[datetime] = None
    delete_date: Optional[datetime] = None
    _dirty: Set[str] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_tracking", True)

    def __setattr__(self, name: str, value: object) -> None:
        if not name.startswith("_") and self.__dict__.get("_tracking"):
            if self.__dict__.get(name, _MISSING) != value:
                self._dirty.add(name)
        object.__setattr__(self, name, value)

    @property
    def has_identity(self) -> bool:
        """Whether the entity has been persisted."""
        return self.id > 0

    @property
    def kind(self) -> ObjectType:
        return self.object_type

    def is_dirty(self) -> bool:
        return bool(self._dirty)

    def is_property_dirty(self, name: str) -> bool:
        return name in self._dirty

    def dirty_properties(self) -> Set[str]:
        return set(self._dirty)

    def reset_dirty_properties(self, *names: str) -> None:
        """Clear the given dirty flags, or all of them when none given."""
        if names:
            self._dirty.difference_update(names)
        else:
            self._dirty.clear()


@dataclass(eq=False)
class DataTypeDefinition(TreeEntity):
    """A data type definition.

    Attributes:
        property_editor_alias: Alias of the editor that renders values
        database_type: Column type values are stored in
    """

    object_type: ClassVar[ObjectType] = ObjectType.DATA_TYPE

    property_editor_alias: str = ""
    database_type: DatabaseType = DatabaseType.NTEXT


@dataclass(eq=False)
class EntityContainer(TreeEntity):
    """Folder node grouping data types in the tree."""

    object_type: ClassVar[ObjectType] = ObjectType.DATA_TYPE_CONTAINER


@dataclass(eq=False)
class PropertyType:
    """A property definition on a content type, bound to a data type."""

    alias: str
    name: str
    data_type_id: int
    id: int = 0
    sort_order: int = 0
    mandatory: bool = False


@dataclass(eq=False)
class PropertyGroup:
    """A named tab of property definitions."""

    name: str
    id: int = 0
    sort_order: int = 0
    property_types: List[PropertyType] = field(default_factory=list)


@dataclass(eq=False)
class ContentType(TreeEntity):
    """Document, media or member type.

    The kind is per instance since the three content type flavours share
    their tables and differ only in the node kind.
    """

    alias: str = ""
    content_kind: ObjectType = ObjectType.DOCUMENT_TYPE
    property_groups: List[PropertyGroup] = field(default_factory=list)
    no_group_property_types: List[PropertyType] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.content_kind not in CONTENT_TYPE_KINDS:
            raise ValueError(f"Not a content type kind: {self.content_kind}")
        super().__post_init__()

    @property
    def kind(self) -> ObjectType:
        return self.content_kind

    def property_types(self) -> Iterator[PropertyType]:
        """Iterate every property definition, grouped ones first."""
        for group in self.property_groups:
            yield from group.property_types
        yield from self.no_group_property_types

    def remove_property_types_using(self, data_type_id: int) -> List[PropertyType]:
        """Drop every property definition bound to a data type.

        Args:
            data_type_id: Data type being removed

        Returns:
            The property types that were removed
        """
        removed = [pt for pt in self.property_types() if pt.data_type_id == data_type_id]
        if not removed:
            return removed

        for group in self.property_groups:
            group.property_types = [
                pt for pt in group.property_types if pt.data_type_id != data_type_id
            ]
        self.no_group_property_types = [
            pt for pt in self.no_group_property_types if pt.data_type_id != data_type_id
        ]
        return removed


@dataclass(frozen=True)
class MoveEventInfo:
    """One entity affected by a move.

    Attributes:
        entity: The entity, carrying its new placement
        original_path: Path before the move
        original_parent_id: Parent id before the move
    """

    entity: TreeEntity
    original_path: str
    original_parent_id: int

    @property
    def entity_id(self) -> int:
        return self.entity.id
