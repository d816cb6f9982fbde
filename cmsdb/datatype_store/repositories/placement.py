"""
Tree placement: path, level and sort order.

Placement is computed from the parent row:
- New node: level = parent.level + 1, sort order = number of existing
  children of the same kind, path finalized once the id is known
- Moved node: path = parent.path + "," + id, level = parent.level + 1,
  sort order appended after the last sibling
- Descendants of a moved node: path prefix replaced, processed by
  ascending level so every parent is rewritten before its children

Invariants:
    - level == number of path segments
    - the last path segment is the node's own id
    - a node can never be moved under itself or one of its descendants
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from ..errors import MissingParentError, MoveNotAllowedError
from ..models import ObjectType
from ..persistence import Transaction


@dataclass(frozen=True)
class Placement:
    """Position of a node in the tree.

    For a new node, path is the parent path until finalize_path() is
    applied with the store-assigned id.
    """

    path: str
    level: int
    sort_order: int


@dataclass(frozen=True)
class ParentNode:
    id: int
    path: str
    level: int


@dataclass(frozen=True)
class DescendantPlacement:
    """New path and level for one descendant of a moved node."""

    id: int
    parent_id: int
    path: str
    level: int


def finalize_path(parent_path: str, node_id: int) -> str:
    return f"{parent_path},{node_id}"


def path_level(path: str) -> int:
    return len(path.split(","))


def assert_can_move(entity_id: int, target: ParentNode) -> None:
    """Reject a move that would create a cycle.

    Raises:
        MoveNotAllowedError: If target is entity_id or below it
    """
    if str(entity_id) in target.path.split(","):
        raise MoveNotAllowedError(entity_id, target.id, target.path)


def rewrite_descendant_paths(
    descendants: Iterable[Tuple[int, int, int]],
    new_paths: Dict[int, str],
) -> List[DescendantPlacement]:
    """Compute new placements for the descendants of moved nodes.

    Args:
        descendants: (id, parent_id, current level) for every descendant
        new_paths: Already-known new paths, seeded with the moved node

    Returns:
        Placements in ascending original level order

    Raises:
        MissingParentError: If a descendant's parent is neither the moved
            node nor another descendant
    """
    paths = dict(new_paths)
    placements = []
    for node_id, parent_id, _level in sorted(descendants, key=lambda d: d[2]):
        if parent_id not in paths:
            raise MissingParentError(parent_id)
        path = finalize_path(paths[parent_id], node_id)
        paths[node_id] = path
        placements.append(DescendantPlacement(node_id, parent_id, path, path_level(path)))
    return placements


class PlacementCalculator:
    """Computes placements for one node kind against the store."""

    def __init__(self, object_type: ObjectType) -> None:
        self.object_type = object_type

    def get_parent(self, tx: Transaction, parent_id: int) -> ParentNode:
        """Load the parent row.

        Raises:
            MissingParentError: If no node has parent_id
        """
        row = tx.fetch_one("SELECT id, path, level FROM nodes WHERE id = ?", (parent_id,))
        if row is None:
            raise MissingParentError(parent_id)
        return ParentNode(id=row["id"], path=row["path"], level=row["level"])

    def place_new(self, tx: Transaction, parent_id: int) -> Placement:
        """Placement for a node about to be inserted under parent_id."""
        parent = self.get_parent(tx, parent_id)
        sort_order = tx.execute_scalar(
            "SELECT COUNT(*) FROM nodes WHERE parent_id = ? AND node_object_type = ?",
            (parent_id, self.object_type.value),
        )
        return Placement(path=parent.path, level=parent.level + 1, sort_order=sort_order)

    def place_moved(self, tx: Transaction, parent_id: int, node_id: int) -> Placement:
        """Placement for an existing node re-parented under parent_id.

        The node goes after the last sibling of its kind.
        """
        parent = self.get_parent(tx, parent_id)
        max_sort_order = tx.execute_scalar(
            """
            SELECT COALESCE(MAX(sort_order), 0) FROM nodes
            WHERE parent_id = ? AND node_object_type = ? AND id <> ?
            """,
            (parent_id, self.object_type.value, node_id),
        )
        return Placement(
            path=finalize_path(parent.path, node_id),
            level=parent.level + 1,
            sort_order=max_sort_order + 1,
        )
