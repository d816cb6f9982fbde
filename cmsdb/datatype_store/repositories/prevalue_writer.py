"""
Pre-value persistence.

PreValueWriter is the only code touching data_type_pre_values. It reads
a data type's rows, applies a ReconcilePlan and looks single rows up by
id; there is deliberately no generic get/save/delete surface.

Invariants:
    - Deletes run before inserts and updates
    - Writes require a persisted data type (IdentityRequiredError)
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from ..errors import IdentityRequiredError
from ..models import DataTypeDefinition
from ..persistence import Transaction
from .reconciler import PreValueRow, ReconcilePlan

logger = logging.getLogger(__name__)

TABLE = "data_type_pre_values"


def _row(row) -> PreValueRow:
    return PreValueRow(
        id=row["id"],
        alias=row["alias"],
        value=row["value"],
        sort_order=row["sort_order"],
    )


class PreValueWriter:
    """Reads and writes the pre-value rows of data types."""

    def fetch_rows(self, tx: Transaction, data_type_id: int) -> List[PreValueRow]:
        """All rows of a data type, in sort order."""
        rows = tx.fetch(
            f"SELECT id, alias, value, sort_order FROM {TABLE} "
            "WHERE data_type_node_id = ? ORDER BY sort_order, id",
            (data_type_id,),
        )
        return [_row(row) for row in rows]

    def fetch_by_id(self, tx: Transaction, pre_value_id: int) -> Optional[Tuple[int, PreValueRow]]:
        """Look a single row up.

        Returns:
            (owning data type id, row), or None when no such row exists
        """
        row = tx.fetch_one(
            f"SELECT id, data_type_node_id, alias, value, sort_order FROM {TABLE} WHERE id = ?",
            (pre_value_id,),
        )
        if row is None:
            return None
        return row["data_type_node_id"], _row(row)

    def apply(self, tx: Transaction, data_type: DataTypeDefinition, plan: ReconcilePlan) -> List[int]:
        """Execute a reconcile plan.

        Args:
            tx: Open transaction
            data_type: Owning data type, must be persisted
            plan: Plan from reconcile()

        Returns:
            Ids of the written rows, in sort order

        Raises:
            IdentityRequiredError: If data_type has no id
        """
        if not data_type.has_identity:
            raise IdentityRequiredError(data_type.name)

        for row in plan.to_delete:
            tx.delete(TABLE, "id = ?", (row.id,))

        written = []
        for row in plan.writes():
            values = {
                "data_type_node_id": data_type.id,
                "alias": row.alias,
                "value": row.value,
                "sort_order": row.sort_order,
            }
            if row.id:
                tx.update(TABLE, values, "id = ?", (row.id,))
                written.append(row.id)
            else:
                written.append(tx.insert(TABLE, values))

        logger.debug(
            "Applied pre-value plan",
            extra={
                "data_type_id": data_type.id,
                "inserted": len(plan.to_insert),
                "updated": len(plan.to_update),
                "deleted": len(plan.to_delete),
            },
        )
        return written

    def delete_all(self, tx: Transaction, data_type_id: int) -> int:
        return tx.delete(TABLE, "data_type_node_id = ?", (data_type_id,))
