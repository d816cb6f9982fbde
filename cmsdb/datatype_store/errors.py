"""
Error types for the data type store.

This module defines all exception types raised by the repositories:
- DataTypeStoreError: Base exception
- DuplicateNameError: Name still collides after unique-name resolution
- MoveNotAllowedError: Move target is the entity itself or a descendant
- MissingParentError: Parent row cannot be resolved during placement
- IdentityRequiredError: Pre-value write for an unsaved data type
- EntityNotFoundError: Lookup by id found nothing where a row is required
- ScopeRequiredError: Repository used without an ambient scope
- StoreFailureError: Any underlying sqlite error

Invariants:
    - All errors inherit from DataTypeStoreError
    - Errors carry a stable code for programmatic handling
    - Raising any of these inside a scope rolls the scope back
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DataTypeStoreError(Exception):
    """Base exception for all data type store errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DATATYPE_STORE_ERROR"
        self.details = details or {}


class DuplicateNameError(DataTypeStoreError):
    """A sibling of the same kind already uses the resolved name."""

    def __init__(self, name: str, object_type: str) -> None:
        super().__init__(
            f"A {object_type} with the name '{name}' already exists",
            code="DUPLICATE_NAME",
            details={"name": name, "object_type": object_type},
        )
        self.name = name
        self.object_type = object_type


class MoveNotAllowedError(DataTypeStoreError):
    """Move target is the moved entity or one of its descendants."""

    def __init__(self, entity_id: int, target_id: int, target_path: str) -> None:
        super().__init__(
            f"Cannot move {entity_id} under {target_id}: target path {target_path} "
            "contains the entity being moved",
            code="MOVE_NOT_ALLOWED",
            details={
                "entity_id": entity_id,
                "target_id": target_id,
                "target_path": target_path,
            },
        )
        self.entity_id = entity_id
        self.target_id = target_id


class MissingParentError(DataTypeStoreError):
    """Placement could not resolve the parent row."""

    def __init__(self, parent_id: int) -> None:
        super().__init__(
            f"Parent node {parent_id} does not exist",
            code="MISSING_PARENT",
            details={"parent_id": parent_id},
        )
        self.parent_id = parent_id


class IdentityRequiredError(DataTypeStoreError):
    """Pre-values were written for a data type that has no id yet."""

    def __init__(self, name: Optional[str] = None) -> None:
        super().__init__(
            f"Cannot write pre-values for data type '{name}': it has no identity",
            code="IDENTITY_REQUIRED",
            details={"name": name},
        )


class EntityNotFoundError(DataTypeStoreError):
    """No row exists for the requested id."""

    def __init__(self, entity_id: int, object_type: str) -> None:
        super().__init__(
            f"No {object_type} found with id {entity_id}",
            code="ENTITY_NOT_FOUND",
            details={"entity_id": entity_id, "object_type": object_type},
        )
        self.entity_id = entity_id


class ScopeRequiredError(DataTypeStoreError):
    """A repository operation ran outside of any scope."""

    def __init__(self) -> None:
        super().__init__(
            "No ambient scope: wrap the call in ScopeProvider.create_scope()",
            code="SCOPE_REQUIRED",
        )


class StoreFailureError(DataTypeStoreError):
    """The relational store rejected a statement.

    The original sqlite exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, sql: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="STORE_FAILURE",
            details={"sql": sql},
        )
        self.sql = sql
