"""
Models for the data type store.

This module provides the entity and pre-value types:
- Tree entities (DataTypeDefinition, EntityContainer, ContentType)
- Property definitions (PropertyGroup, PropertyType)
- Pre-values and the two-variant PreValueCollection
- MoveEventInfo records returned by moves

Invariants:
    - Entities are identified by id once persisted, by key always
    - PreValueCollection is exactly one of PreValueSequence/PreValueMapping
"""

from .entities import (
    CONTENT_TYPE_KINDS,
    ROOT_ID,
    ROOT_LEVEL,
    ROOT_PATH,
    ContentType,
    DatabaseType,
    DataTypeDefinition,
    EntityContainer,
    MoveEventInfo,
    ObjectType,
    PropertyGroup,
    PropertyType,
    TreeEntity,
)
from .prevalues import (
    PreValue,
    PreValueCollection,
    PreValueMapping,
    PreValueSequence,
    to_collection,
)

__all__ = [
    # Entities
    "TreeEntity",
    "DataTypeDefinition",
    "EntityContainer",
    "ContentType",
    "PropertyGroup",
    "PropertyType",
    "MoveEventInfo",
    "ObjectType",
    "DatabaseType",
    "CONTENT_TYPE_KINDS",
    "ROOT_ID",
    "ROOT_PATH",
    "ROOT_LEVEL",
    # Pre-values
    "PreValue",
    "PreValueCollection",
    "PreValueSequence",
    "PreValueMapping",
    "to_collection",
]
