"""
Content type persistence.

Document, media and member types share one set of tables and differ
only in their node kind. A content type owns property groups, and
property types bound to data types, either inside a group or
ungrouped.

Invariants:
    - save() converges the stored groups and property types to the
      in-memory aggregate
    - A property type removed from the aggregate takes its tag relations
      and stored property data with it
    - Property types are written before groups are removed, so no
      property type ever points at a deleted group
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from ..models import CONTENT_TYPE_KINDS, ContentType, ObjectType, PropertyGroup, PropertyType
from ..persistence import Transaction
from .base import NODE_COLUMNS, NodeRepositoryBase, node_fields

logger = logging.getLogger(__name__)

CONTENT_TYPE_SELECT = f"""
    SELECT {NODE_COLUMNS}, c.alias
    FROM content_types c
    INNER JOIN nodes n ON n.id = c.node_id
"""


class ContentTypeRepository(NodeRepositoryBase):
    """Reads and writes content types and their property definitions."""

    def get(self, content_type_id: int) -> Optional[ContentType]:
        tx = self._tx
        row = tx.fetch_one(CONTENT_TYPE_SELECT + " WHERE n.id = ?", (content_type_id,))
        if row is None:
            return None
        return self._build(tx, row)

    def get_many(self, *content_type_ids: int) -> List[ContentType]:
        """Load content types by id, or all of them when no id is given."""
        tx = self._tx
        if content_type_ids:
            placeholders = ", ".join("?" for _ in content_type_ids)
            rows = tx.fetch(
                CONTENT_TYPE_SELECT + f" WHERE n.id IN ({placeholders}) ORDER BY n.id",
                content_type_ids,
            )
        else:
            rows = tx.fetch(CONTENT_TYPE_SELECT + " ORDER BY n.id")
        return [self._build(tx, row) for row in rows]

    def get_by_data_type_reference(
        self,
        data_type_id: int,
        kinds: Sequence[ObjectType] = CONTENT_TYPE_KINDS,
    ) -> List[ContentType]:
        """Content types with at least one property type bound to a data type.

        Args:
            data_type_id: Referenced data type
            kinds: Content type kinds to search

        Returns:
            Matching content types, ordered by id
        """
        tx = self._tx
        placeholders = ", ".join("?" for _ in kinds)
        rows = tx.fetch(
            CONTENT_TYPE_SELECT
            + f"""
            WHERE n.node_object_type IN ({placeholders})
              AND n.id IN (SELECT content_type_id FROM property_types WHERE data_type_id = ?)
            ORDER BY n.id
            """,
            (*(kind.value for kind in kinds), data_type_id),
        )
        return [self._build(tx, row) for row in rows]

    def save(self, content_type: ContentType) -> None:
        """Insert or update a content type and its property definitions."""
        tx = self._tx
        if content_type.has_identity:
            self._update_node(tx, content_type)
            tx.update(
                "content_types",
                {"alias": content_type.alias},
                "node_id = ?",
                (content_type.id,),
            )
        else:
            self._insert_node(tx, content_type)
            tx.insert("content_types", {"node_id": content_type.id, "alias": content_type.alias})

        self._save_property_definitions(tx, content_type)
        content_type.reset_dirty_properties()
        logger.debug(
            f"Saved {content_type.kind.value} {content_type.id}",
            extra={"content_type_id": content_type.id, "alias": content_type.alias},
        )

    def _build(self, tx: Transaction, row) -> ContentType:
        group_rows = tx.fetch(
            """
            SELECT id, text, sort_order FROM property_type_groups
            WHERE content_type_node_id = ? ORDER BY sort_order, id
            """,
            (row["id"],),
        )
        groups: Dict[int, PropertyGroup] = {
            g["id"]: PropertyGroup(name=g["text"], id=g["id"], sort_order=g["sort_order"])
            for g in group_rows
        }

        ungrouped = []
        for pt in tx.fetch(
            """
            SELECT id, data_type_id, property_type_group_id, alias, name, sort_order, mandatory
            FROM property_types WHERE content_type_id = ? ORDER BY sort_order, id
            """,
            (row["id"],),
        ):
            property_type = PropertyType(
                alias=pt["alias"],
                name=pt["name"],
                data_type_id=pt["data_type_id"],
                id=pt["id"],
                sort_order=pt["sort_order"],
                mandatory=bool(pt["mandatory"]),
            )
            group = groups.get(pt["property_type_group_id"])
            if group is not None:
                group.property_types.append(property_type)
            else:
                ungrouped.append(property_type)

        return ContentType(
            **node_fields(row),
            alias=row["alias"],
            content_kind=ObjectType(row["node_object_type"]),
            property_groups=list(groups.values()),
            no_group_property_types=ungrouped,
        )

    def _save_property_definitions(self, tx: Transaction, content_type: ContentType) -> None:
        stored_property_type_ids = self._ids(
            tx.fetch(
                "SELECT id FROM property_types WHERE content_type_id = ?", (content_type.id,)
            )
        )
        stored_group_ids = self._ids(
            tx.fetch(
                "SELECT id FROM property_type_groups WHERE content_type_node_id = ?",
                (content_type.id,),
            )
        )

        kept = {pt.id for pt in content_type.property_types() if pt.id in stored_property_type_ids}
        for property_type_id in sorted(stored_property_type_ids - kept):
            self._delete_property_type(tx, property_type_id)

        for group in content_type.property_groups:
            values = {
                "content_type_node_id": content_type.id,
                "text": group.name,
                "sort_order": group.sort_order,
            }
            if group.id in stored_group_ids:
                tx.update("property_type_groups", values, "id = ?", (group.id,))
            else:
                group.id = tx.insert("property_type_groups", values)

            for property_type in group.property_types:
                self._save_property_type(
                    tx, content_type, property_type, group.id, stored_property_type_ids
                )

        for property_type in content_type.no_group_property_types:
            self._save_property_type(
                tx, content_type, property_type, None, stored_property_type_ids
            )

        kept_groups = {group.id for group in content_type.property_groups}
        for group_id in sorted(stored_group_ids - kept_groups):
            tx.delete("property_type_groups", "id = ?", (group_id,))

    def _save_property_type(
        self,
        tx: Transaction,
        content_type: ContentType,
        property_type: PropertyType,
        group_id: Optional[int],
        stored_ids: set,
    ) -> None:
        values = {
            "data_type_id": property_type.data_type_id,
            "content_type_id": content_type.id,
            "property_type_group_id": group_id,
            "alias": property_type.alias,
            "name": property_type.name,
            "sort_order": property_type.sort_order,
            "mandatory": int(property_type.mandatory),
        }
        if property_type.id in stored_ids:
            tx.update("property_types", values, "id = ?", (property_type.id,))
        else:
            property_type.id = tx.insert("property_types", values)

    def _delete_property_type(self, tx: Transaction, property_type_id: int) -> None:
        tx.delete("tag_relationships", "property_type_id = ?", (property_type_id,))
        data_rows = tx.delete("property_data", "property_type_id = ?", (property_type_id,))
        tx.delete("property_types", "id = ?", (property_type_id,))
        logger.info(
            f"Removed property type {property_type_id}",
            extra={"property_type_id": property_type_id, "property_data_rows": data_rows},
        )

    @staticmethod
    def _ids(rows: Iterable) -> set:
        return {row["id"] for row in rows}
