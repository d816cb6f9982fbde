"""
Shared node-row handling for repositories.

Every entity is stored as a row in nodes plus, for most kinds, a row in
a kind-specific table. This module holds the node-row half:
- Two-phase insert (insert to get the id, then rewrite the path)
- Updates, recomputing placement when the parent changed
- Subtree moves for the data type tree

Invariants:
    - Repositories only run inside an ambient scope
    - Placement and naming checks happen before the first write
    - A move rewrites descendants parent-first (ascending level)
    - A move writes placement only; save() persists everything else
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, ClassVar, Dict, List

from ..errors import DuplicateNameError, EntityNotFoundError
from ..models import (
    DatabaseType,
    DataTypeDefinition,
    EntityContainer,
    MoveEventInfo,
    ObjectType,
    TreeEntity,
)
from ..persistence import Scope, ScopeProvider, Transaction, from_ms, now_ms
from .naming import UniqueNameResolver
from .placement import PlacementCalculator, assert_can_move, finalize_path, rewrite_descendant_paths

logger = logging.getLogger(__name__)

NODE_COLUMNS = """
    n.id, n.unique_id, n.parent_id, n.level, n.path, n.sort_order, n.text,
    n.node_object_type, n.create_date, n.update_date
"""

# Kinds that make up the data type tree (and move together)
TREE_KINDS = (ObjectType.DATA_TYPE, ObjectType.DATA_TYPE_CONTAINER)

TREE_SELECT = f"""
    SELECT {NODE_COLUMNS}, d.property_editor_alias, d.db_type
    FROM nodes n
    LEFT JOIN data_types d ON d.node_id = n.id
"""


def node_fields(row: Any) -> Dict[str, Any]:
    """Constructor arguments shared by every TreeEntity."""
    return {
        "id": row["id"],
        "key": uuid.UUID(row["unique_id"]),
        "name": row["text"],
        "parent_id": row["parent_id"],
        "path": row["path"],
        "level": row["level"],
        "sort_order": row["sort_order"],
        "create_date": from_ms(row["create_date"]),
        "update_date": from_ms(row["update_date"]),
    }


def tree_entity_from_row(row: Any) -> TreeEntity:
    """Build a data type or container from a TREE_SELECT row."""
    kind = ObjectType(row["node_object_type"])
    if kind is ObjectType.DATA_TYPE:
        return DataTypeDefinition(
            **node_fields(row),
            property_editor_alias=row["property_editor_alias"],
            database_type=DatabaseType(row["db_type"]),
        )
    if kind is ObjectType.DATA_TYPE_CONTAINER:
        return EntityContainer(**node_fields(row))
    raise ValueError(f"Node {row['id']} of kind {kind.value} is not part of the data type tree")


class NodeRepositoryBase:
    """Base for repositories persisting entities as node rows."""

    def __init__(self, scope_provider: ScopeProvider) -> None:
        self.scope_provider = scope_provider

    def _scope(self) -> Scope:
        return self.scope_provider.require_scope()

    @property
    def _tx(self) -> Transaction:
        return self._scope().transaction

    def _insert_node(self, tx: Transaction, entity: TreeEntity) -> None:
        """Insert the node row and finalize its path.

        Sets id, path, level, sort order and dates on entity.

        Raises:
            MissingParentError: Before any write, if the parent is unknown
        """
        placement = PlacementCalculator(entity.kind).place_new(tx, entity.parent_id)
        now = now_ms()

        node_id = tx.insert(
            "nodes",
            {
                "unique_id": str(entity.key),
                "parent_id": entity.parent_id,
                "level": placement.level,
                "path": placement.path,
                "sort_order": placement.sort_order,
                "text": entity.name,
                "node_object_type": entity.kind.value,
                "create_date": now,
                "update_date": now,
            },
        )

        # The path ends with the node's own id, known only now
        path = finalize_path(placement.path, node_id)
        tx.update("nodes", {"path": path}, "id = ?", (node_id,))

        entity.id = node_id
        entity.path = path
        entity.level = placement.level
        entity.sort_order = placement.sort_order
        entity.create_date = from_ms(now)
        entity.update_date = from_ms(now)

    def _update_node(self, tx: Transaction, entity: TreeEntity) -> None:
        """Write the node row, re-placing the entity if its parent changed.

        Only the entity itself is re-placed; descendants keep their
        paths (use a move for that).

        Raises:
            MissingParentError: If a changed parent does not exist
            MoveNotAllowedError: If the new parent is the entity or below it
            EntityNotFoundError: If no node row has the entity's id
        """
        if entity.is_property_dirty("parent_id"):
            calculator = PlacementCalculator(entity.kind)
            assert_can_move(entity.id, calculator.get_parent(tx, entity.parent_id))
            placement = calculator.place_moved(tx, entity.parent_id, entity.id)
            entity.path = placement.path
            entity.level = placement.level
            entity.sort_order = placement.sort_order

        now = now_ms()
        updated = tx.update(
            "nodes",
            {
                "parent_id": entity.parent_id,
                "level": entity.level,
                "path": entity.path,
                "sort_order": entity.sort_order,
                "text": entity.name,
                "update_date": now,
            },
            "id = ?",
            (entity.id,),
        )
        if updated == 0:
            raise EntityNotFoundError(entity.id, entity.kind.value)
        entity.update_date = from_ms(now)

    def _write_placement(self, tx: Transaction, entity: TreeEntity) -> None:
        now = now_ms()
        tx.update(
            "nodes",
            {
                "parent_id": entity.parent_id,
                "level": entity.level,
                "path": entity.path,
                "sort_order": entity.sort_order,
                "update_date": now,
            },
            "id = ?",
            (entity.id,),
        )
        entity.update_date = from_ms(now)


class TreeRepositoryBase(NodeRepositoryBase):
    """Base for the kinds living in the data type tree.

    Subclasses set object_type; names are unique per object_type.
    """

    object_type: ClassVar[ObjectType]

    def __init__(self, scope_provider: ScopeProvider) -> None:
        super().__init__(scope_provider)
        self.naming = UniqueNameResolver(self.object_type)

    def _ensure_unique_name(self, tx: Transaction, entity: TreeEntity) -> None:
        """Resolve entity.name to a free name, then double-check the store.

        Raises:
            DuplicateNameError: If the resolved name is still taken
        """
        entity.name = self.naming.resolve(tx, entity.name, entity.id)
        if self.naming.is_taken(tx, entity.name, entity.id):
            raise DuplicateNameError(entity.name, self.object_type.value)

    def _move(self, entity: TreeEntity, parent_id: int) -> List[MoveEventInfo]:
        """Move entity under parent_id, rewriting every descendant.

        Only placement columns are written. Other pending changes on
        entity (a rename, say) stay dirty until the next save.

        Args:
            entity: Persisted entity to move
            parent_id: New parent node id

        Returns:
            One MoveEventInfo for the entity, then one per descendant in
            the order they were rewritten

        Raises:
            MissingParentError: If parent_id does not exist
            MoveNotAllowedError: If parent_id is entity or below it
            EntityNotFoundError: If entity is not persisted
        """
        tx = self._tx
        calculator = PlacementCalculator(entity.kind)
        parent = calculator.get_parent(tx, parent_id)
        assert_can_move(entity.id, parent)

        row = tx.fetch_one("SELECT path, parent_id FROM nodes WHERE id = ?", (entity.id,))
        if row is None:
            raise EntityNotFoundError(entity.id, entity.kind.value)
        original_path = row["path"]

        moves = [MoveEventInfo(entity, original_path, row["parent_id"])]

        placement = calculator.place_moved(tx, parent.id, entity.id)
        entity.parent_id = parent.id
        entity.path = placement.path
        entity.level = placement.level
        entity.sort_order = placement.sort_order
        self._write_placement(tx, entity)
        entity.reset_dirty_properties("parent_id", "path", "level", "sort_order", "update_date")

        rows = tx.fetch(
            TREE_SELECT
            + f"""
            WHERE n.path LIKE ? AND n.node_object_type IN ({', '.join('?' for _ in TREE_KINDS)})
            ORDER BY n.level, n.id
            """,
            (original_path + ",%", *(kind.value for kind in TREE_KINDS)),
        )
        rows_by_id = {r["id"]: r for r in rows}
        placements = rewrite_descendant_paths(
            ((r["id"], r["parent_id"], r["level"]) for r in rows),
            {entity.id: entity.path},
        )

        for descendant_placement in placements:
            descendant = tree_entity_from_row(rows_by_id[descendant_placement.id])
            moves.append(MoveEventInfo(descendant, descendant.path, descendant.parent_id))

            descendant.path = descendant_placement.path
            descendant.level = descendant_placement.level
            self._write_placement(tx, descendant)
            descendant.reset_dirty_properties()

        logger.info(
            f"Moved {entity.kind.value} {entity.id} under {parent.id}",
            extra={
                "entity_id": entity.id,
                "original_path": original_path,
                "path": entity.path,
                "descendants": len(placements),
            },
        )
        return moves
