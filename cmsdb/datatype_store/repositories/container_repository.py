"""
Data type container (folder) persistence.

Containers are stored as bare node rows. They use the same naming and
placement rules as data types, and moving one carries every data type
and container below it along.

Invariants:
    - Only empty containers can be deleted
    - Container names are unique among containers
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..errors import DataTypeStoreError, EntityNotFoundError
from ..models import ROOT_ID, EntityContainer, MoveEventInfo, ObjectType, TreeEntity
from .base import TREE_SELECT, TreeRepositoryBase, tree_entity_from_row

logger = logging.getLogger(__name__)


class EntityContainerRepository(TreeRepositoryBase):
    """Repository for data type containers."""

    object_type = ObjectType.DATA_TYPE_CONTAINER

    def get(self, container_id: int) -> Optional[EntityContainer]:
        row = self._tx.fetch_one(
            TREE_SELECT + " WHERE n.id = ? AND n.node_object_type = ?",
            (container_id, self.object_type.value),
        )
        return tree_entity_from_row(row) if row is not None else None

    def get_all(self) -> List[EntityContainer]:
        rows = self._tx.fetch(
            TREE_SELECT + " WHERE n.node_object_type = ? ORDER BY n.level, n.sort_order, n.id",
            (self.object_type.value,),
        )
        return [tree_entity_from_row(row) for row in rows]

    def get_children(self, parent_id: int = ROOT_ID) -> List[TreeEntity]:
        """Data types and containers directly under parent_id."""
        rows = self._tx.fetch(
            TREE_SELECT
            + """
            WHERE n.parent_id = ? AND n.id <> n.parent_id AND n.node_object_type IN (?, ?)
            ORDER BY n.node_object_type DESC, n.sort_order, n.id
            """,
            (parent_id, ObjectType.DATA_TYPE_CONTAINER.value, ObjectType.DATA_TYPE.value),
        )
        return [tree_entity_from_row(row) for row in rows]

    def save(self, container: EntityContainer) -> None:
        """Create or rename/re-parent a container.

        Raises:
            DuplicateNameError: If the resolved name is taken
            MissingParentError: If the parent does not exist
            MoveNotAllowedError: If the new parent is the container itself
                or below it
        """
        tx = self._tx
        self._ensure_unique_name(tx, container)
        if container.has_identity:
            self._update_node(tx, container)
        else:
            self._insert_node(tx, container)
        container.reset_dirty_properties()
        logger.debug(
            f"Saved container {container.id}",
            extra={"container_id": container.id, "path": container.path},
        )

    def delete(self, container: EntityContainer) -> None:
        """Delete an empty container.

        Raises:
            EntityNotFoundError: If the container is not stored
            DataTypeStoreError: CONTAINER_NOT_EMPTY if anything is below it
        """
        tx = self._tx
        if not container.has_identity or self.get(container.id) is None:
            raise EntityNotFoundError(container.id, self.object_type.value)

        children = tx.execute_scalar(
            "SELECT COUNT(*) FROM nodes WHERE parent_id = ? AND id <> ?",
            (container.id, container.id),
        )
        if children:
            raise DataTypeStoreError(
                f"Container {container.id} is not empty",
                code="CONTAINER_NOT_EMPTY",
                details={"container_id": container.id, "children": children},
            )

        tx.delete("user_node_notify", "node_id = ?", (container.id,))
        tx.delete("user_group_node_permissions", "node_id = ?", (container.id,))
        tx.delete("nodes", "id = ?", (container.id,))
        logger.info(f"Deleted container {container.id}", extra={"container_id": container.id})

    def move(
        self,
        container: EntityContainer,
        parent: Optional[EntityContainer] = None,
    ) -> List[MoveEventInfo]:
        """Move a container (and everything below it) under parent or the root."""
        parent_id = parent.id if parent is not None else ROOT_ID
        return self._move(container, parent_id)
