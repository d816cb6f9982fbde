"""
Repositories for the data type store.

This module provides:
- DataTypeDefinitionRepository: data types and their pre-values
- EntityContainerRepository: data type folders
- ContentTypeRepository: content types referencing data types
- The helpers they share (naming, placement, reconciliation, cascade)
"""

from .cascade import CascadeDeletion
from .container_repository import EntityContainerRepository
from .content_type_repository import ContentTypeRepository
from .datatype_repository import DataTypeDefinitionRepository, DataTypeQuery
from .naming import UniqueNameResolver, get_unique_name
from .placement import (
    Placement,
    PlacementCalculator,
    assert_can_move,
    finalize_path,
    rewrite_descendant_paths,
)
from .prevalue_writer import PreValueWriter
from .reconciler import PreValueRow, ReconcilePlan, reconcile

__all__ = [
    # Repositories
    "DataTypeDefinitionRepository",
    "DataTypeQuery",
    "EntityContainerRepository",
    "ContentTypeRepository",
    # Helpers
    "CascadeDeletion",
    "UniqueNameResolver",
    "get_unique_name",
    "Placement",
    "PlacementCalculator",
    "assert_can_move",
    "finalize_path",
    "rewrite_descendant_paths",
    "PreValueWriter",
    "PreValueRow",
    "ReconcilePlan",
    "reconcile",
]
