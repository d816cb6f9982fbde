"""
Service layer for the data type store.

DataTypeService wraps the repositories in scopes and publishes change
events after commit.
"""

from .datatype_service import DataTypeService

__all__ = ["DataTypeService"]
