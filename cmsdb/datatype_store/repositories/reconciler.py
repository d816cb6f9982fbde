"""
Pre-value reconciliation.

Pure functions comparing a data type's persisted pre-value rows with
the collection a caller wants to store, producing the inserts, updates
and deletes that converge one to the other.

Invariants:
    - A desired entry whose id matches a persisted row updates that row,
      keeping its id
    - Any other desired entry is inserted
    - A persisted row no desired entry refers to is deleted
    - Sort orders are reassigned 1, 2, 3... in desired iteration order
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Set, Tuple, Union

from ..models import PreValue, PreValueCollection


@dataclass(frozen=True)
class PreValueRow:
    """A pre-value as stored, alias included.

    Attributes:
        id: Row id, 0 for a row still to be inserted
        alias: Key within the collection ("" or None when unkeyed)
        value: Stored value
        sort_order: Position within the collection
    """

    id: int
    alias: Optional[str]
    value: Optional[str]
    sort_order: int

    def to_pre_value(self) -> PreValue:
        return PreValue(id=self.id, value=self.value, sort_order=self.sort_order)


@dataclass(frozen=True)
class ReconcilePlan:
    """Statements needed to converge persisted rows to a desired state."""

    to_insert: Tuple[PreValueRow, ...] = ()
    to_update: Tuple[PreValueRow, ...] = ()
    to_delete: Tuple[PreValueRow, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.to_insert or self.to_update or self.to_delete)

    def writes(self) -> List[PreValueRow]:
        """Inserts and updates in their new sort order."""
        return sorted(self.to_insert + self.to_update, key=lambda row: row.sort_order)


DesiredPreValues = Union[Mapping[str, PreValue], PreValueCollection]


def reconcile(
    current_rows: Sequence[PreValueRow],
    desired: DesiredPreValues,
) -> ReconcilePlan:
    """Diff persisted pre-value rows against the desired collection.

    Args:
        current_rows: Rows currently stored for the data type
        desired: Ordered alias -> PreValue mapping, or a materialized
            collection (a sequence contributes unkeyed entries)

    Returns:
        The plan; apply deletes before writes

    Example:
        >>> plan = reconcile(
        ...     [PreValueRow(1, "a", "old", 1), PreValueRow(2, "b", "old", 2)],
        ...     {"a": PreValue(id=1, value="x"), "c": PreValue(value="y")},
        ... )
        >>> [row.id for row in plan.to_delete]
        [2]
    """
    current_ids = {row.id for row in current_rows}
    claimed: Set[int] = set()

    inserts = []
    updates = []
    for sort_order, (alias, pre_value) in enumerate(desired.items(), start=1):
        if pre_value.id > 0 and pre_value.id in current_ids and pre_value.id not in claimed:
            claimed.add(pre_value.id)
            updates.append(PreValueRow(pre_value.id, alias, pre_value.value, sort_order))
        else:
            inserts.append(PreValueRow(0, alias, pre_value.value, sort_order))

    deletes = tuple(row for row in current_rows if row.id not in claimed)

    return ReconcilePlan(
        to_insert=tuple(inserts),
        to_update=tuple(updates),
        to_delete=deletes,
    )
