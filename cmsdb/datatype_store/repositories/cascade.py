"""
Cascading deletion of a data type.

Foreign keys never cascade in the store, so removing a data type means
deleting every dependent row first, in this order:
1. Notification subscriptions on the node
2. Group permissions on the node
3. Tag relations (on the node, or through a property type being removed)
4. For each property type bound to the data type: its stored property
   data, then the property type row
5. Pre-values
6. The data_types row
7. The node row

Invariants:
    - Steps run in the order above, inside the caller's transaction
    - Any failing step aborts the whole deletion (the scope rolls back)
    - The node must be stored under the entity's id and key before
      anything is deleted

How to change safely:
    - A new table referencing nodes or data_types must get a step here,
      before the row it references is deleted
"""

from __future__ import annotations

import logging
from typing import Dict

from ..errors import EntityNotFoundError
from ..models import DataTypeDefinition, ObjectType
from ..persistence import Transaction
from .prevalue_writer import PreValueWriter

logger = logging.getLogger(__name__)


class CascadeDeletion:
    """Removes a data type and everything referencing it."""

    def __init__(self, writer: PreValueWriter) -> None:
        self.writer = writer

    def require_node(self, tx: Transaction, entity: DataTypeDefinition) -> None:
        """Check entity's node row exists with the same kind and key.

        Raises:
            EntityNotFoundError: If no such node is stored
        """
        row = tx.fetch_one(
            "SELECT unique_id FROM nodes WHERE id = ? AND node_object_type = ?",
            (entity.id, ObjectType.DATA_TYPE.value),
        )
        if row is None or row["unique_id"] != str(entity.key):
            raise EntityNotFoundError(entity.id, ObjectType.DATA_TYPE.value)

    def delete(self, tx: Transaction, entity: DataTypeDefinition) -> Dict[str, int]:
        """Delete entity's rows and their dependents.

        Args:
            tx: Open transaction
            entity: Persisted data type

        Returns:
            Number of rows removed per step

        Raises:
            EntityNotFoundError: Before any write, if entity's node is not
                stored under its id and key
        """
        self.require_node(tx, entity)
        counts: Dict[str, int] = {}

        counts["notifications"] = tx.delete("user_node_notify", "node_id = ?", (entity.id,))
        counts["permissions"] = tx.delete(
            "user_group_node_permissions", "node_id = ?", (entity.id,)
        )

        property_type_ids = [
            row["id"]
            for row in tx.fetch(
                "SELECT id FROM property_types WHERE data_type_id = ? ORDER BY id", (entity.id,)
            )
        ]

        counts["tags"] = tx.delete(
            "tag_relationships",
            "node_id = ? OR property_type_id IN "
            "(SELECT id FROM property_types WHERE data_type_id = ?)",
            (entity.id, entity.id),
        )

        counts["property_data"] = 0
        for property_type_id in property_type_ids:
            counts["property_data"] += tx.delete(
                "property_data", "property_type_id = ?", (property_type_id,)
            )
            tx.delete("property_types", "id = ?", (property_type_id,))
        counts["property_types"] = len(property_type_ids)

        counts["pre_values"] = self.writer.delete_all(tx, entity.id)
        counts["data_types"] = tx.delete("data_types", "node_id = ?", (entity.id,))
        counts["nodes"] = tx.delete("nodes", "id = ?", (entity.id,))

        logger.debug(
            f"Cascade-deleted data type {entity.id}",
            extra={"data_type_id": entity.id, **counts},
        )
        return counts
