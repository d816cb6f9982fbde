"""
Data type definition repository.

Persists DataTypeDefinition aggregates (a node row plus a data_types
row) and their pre-values, and serves cached pre-value collections.

Write paths:
- create/update: unique name resolution, placement, node and data type rows
- delete: strip referencing property types from content types, then
  the cascade (see cascade.py)
- move: re-parent and rewrite every descendant path
- add_or_update_pre_values: reconcile and write pre-value rows

Invariants:
    - Every operation runs against the ambient scope
    - DuplicateNameError, MissingParentError and MoveNotAllowedError
      are raised before the first write
    - Cached pre-values for an id are dropped after the scope that
      changed them commits; until then reads in that scope skip the cache

How to change safely:
    - Route every pre-value write through PreValueWriter
    - Register cache invalidation with _invalidate_after_commit(), never
      invalidate directly from a write path
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from ..cache import PreValueCache
from ..errors import EntityNotFoundError
from ..models import (
    ROOT_ID,
    DatabaseType,
    DataTypeDefinition,
    EntityContainer,
    MoveEventInfo,
    ObjectType,
    PreValue,
    PreValueCollection,
    to_collection,
)
from ..persistence import Scope, ScopeProvider, Transaction, from_ms, now_ms
from .base import NODE_COLUMNS, TreeRepositoryBase, tree_entity_from_row
from .cascade import CascadeDeletion
from .content_type_repository import ContentTypeRepository
from .prevalue_writer import PreValueWriter
from .reconciler import DesiredPreValues, ReconcilePlan, reconcile

logger = logging.getLogger(__name__)

DATA_TYPE_SELECT = f"""
    SELECT {NODE_COLUMNS}, d.property_editor_alias, d.db_type
    FROM data_types d
    INNER JOIN nodes n ON n.id = d.node_id
    WHERE n.node_object_type = ?
"""

DATA_TYPE_ORDER = " ORDER BY n.level, n.sort_order, n.id"


@dataclass
class DataTypeQuery:
    """Filter for data type reads.

    All set fields must match. name compares case-insensitively;
    path_prefix matches the node at that path and everything below it.

    Example:
        >>> repository.get_by_query(DataTypeQuery(property_editor_alias="textbox"))
    """

    name: Optional[str] = None
    parent_id: Optional[int] = None
    property_editor_alias: Optional[str] = None
    database_type: Optional[DatabaseType] = None
    path_prefix: Optional[str] = None

    def to_sql(self) -> Tuple[str, List[Any]]:
        """Return the extra WHERE conditions and their parameters."""
        clauses = []
        params: List[Any] = []
        if self.name is not None:
            clauses.append("n.text = ? COLLATE NOCASE")
            params.append(self.name)
        if self.parent_id is not None:
            clauses.append("n.parent_id = ?")
            params.append(self.parent_id)
        if self.property_editor_alias is not None:
            clauses.append("d.property_editor_alias = ?")
            params.append(self.property_editor_alias)
        if self.database_type is not None:
            clauses.append("d.db_type = ?")
            params.append(self.database_type.value)
        if self.path_prefix is not None:
            clauses.append("(n.path = ? OR n.path LIKE ?)")
            params.extend([self.path_prefix, self.path_prefix + ",%"])
        return "".join(f" AND {clause}" for clause in clauses), params


class DataTypeDefinitionRepository(TreeRepositoryBase):
    """Repository for data type definitions and their pre-values.

    Example:
        >>> repository = DataTypeDefinitionRepository(scopes, cache, ContentTypeRepository(scopes))
        >>> with scopes.create_scope():
        ...     repository.save(DataTypeDefinition(name="Textstring", property_editor_alias="textbox"))
    """

    object_type = ObjectType.DATA_TYPE

    def __init__(
        self,
        scope_provider: ScopeProvider,
        cache: PreValueCache,
        content_type_repository: ContentTypeRepository,
        pre_value_writer: Optional[PreValueWriter] = None,
    ) -> None:
        super().__init__(scope_provider)
        self.cache = cache
        self.content_types = content_type_repository
        self.pre_values = pre_value_writer or PreValueWriter()
        self.cascade = CascadeDeletion(self.pre_values)

    # Reads

    def get(self, data_type_id: int) -> Optional[DataTypeDefinition]:
        row = self._tx.fetch_one(
            DATA_TYPE_SELECT + " AND n.id = ?", (self.object_type.value, data_type_id)
        )
        return tree_entity_from_row(row) if row is not None else None

    def get_many(self, *data_type_ids: int) -> List[DataTypeDefinition]:
        """Load data types by id, or all of them when no id is given.

        Unknown ids are skipped.
        """
        if not data_type_ids:
            return self.get_all()
        placeholders = ", ".join("?" for _ in data_type_ids)
        rows = self._tx.fetch(
            DATA_TYPE_SELECT + f" AND n.id IN ({placeholders})" + DATA_TYPE_ORDER,
            (self.object_type.value, *data_type_ids),
        )
        return [tree_entity_from_row(row) for row in rows]

    def get_all(self) -> List[DataTypeDefinition]:
        rows = self._tx.fetch(DATA_TYPE_SELECT + DATA_TYPE_ORDER, (self.object_type.value,))
        return [tree_entity_from_row(row) for row in rows]

    def get_by_query(self, query: DataTypeQuery) -> List[DataTypeDefinition]:
        conditions, params = query.to_sql()
        rows = self._tx.fetch(
            DATA_TYPE_SELECT + conditions + DATA_TYPE_ORDER,
            (self.object_type.value, *params),
        )
        return [tree_entity_from_row(row) for row in rows]

    def exists(self, data_type_id: int) -> bool:
        count = self._tx.execute_scalar(
            "SELECT COUNT(*) FROM (" + DATA_TYPE_SELECT + " AND n.id = ?)",
            (self.object_type.value, data_type_id),
        )
        return count > 0

    def count(self, query: Optional[DataTypeQuery] = None) -> int:
        conditions, params = query.to_sql() if query is not None else ("", [])
        return self._tx.execute_scalar(
            "SELECT COUNT(*) FROM (" + DATA_TYPE_SELECT + conditions + ")",
            (self.object_type.value, *params),
        )

    # Writes

    def save(self, entity: DataTypeDefinition) -> None:
        if entity.has_identity:
            self.update(entity)
        else:
            self.create(entity)

    def create(self, entity: DataTypeDefinition) -> None:
        """Persist a new data type.

        Raises:
            DuplicateNameError: If the resolved name is taken
            MissingParentError: If entity.parent_id does not exist
        """
        tx = self._tx
        self._ensure_unique_name(tx, entity)
        self._insert_node(tx, entity)
        tx.insert(
            "data_types",
            {
                "node_id": entity.id,
                "property_editor_alias": entity.property_editor_alias,
                "db_type": entity.database_type.value,
            },
        )
        entity.reset_dirty_properties()
        logger.debug(
            f"Created data type {entity.id}",
            extra={"data_type_id": entity.id, "data_type_name": entity.name, "path": entity.path},
        )

    def update(self, entity: DataTypeDefinition) -> None:
        """Persist changes to an existing data type.

        A changed parent_id re-places the entity itself only; use move()
        to carry descendants along.

        Raises:
            DuplicateNameError: If the resolved name is taken
            MissingParentError: If a changed parent does not exist
            MoveNotAllowedError: If the new parent is the data type itself
                or below it
            EntityNotFoundError: If the data type is not stored
        """
        scope = self._scope()
        tx = scope.transaction
        self._ensure_unique_name(tx, entity)
        self._update_node(tx, entity)
        tx.update(
            "data_types",
            {
                "property_editor_alias": entity.property_editor_alias,
                "db_type": entity.database_type.value,
            },
            "node_id = ?",
            (entity.id,),
        )
        self._invalidate_after_commit(scope, entity.id)
        entity.reset_dirty_properties()
        logger.debug(
            f"Updated data type {entity.id}",
            extra={"data_type_id": entity.id, "data_type_name": entity.name},
        )

    def delete(self, entity: DataTypeDefinition) -> None:
        """Delete a data type and everything that depends on it.

        Content types using the data type lose the affected property
        types first; publishing changes for those content types is up to
        the caller.

        Raises:
            EntityNotFoundError: If entity was never persisted, or no node
                is stored under its id and key
        """
        if not entity.has_identity:
            raise EntityNotFoundError(entity.id, self.object_type.value)

        scope = self._scope()
        tx = scope.transaction
        self.cascade.require_node(tx, entity)

        changed_content_types = []
        for content_type in self.content_types.get_by_data_type_reference(entity.id):
            if content_type.remove_property_types_using(entity.id):
                self.content_types.save(content_type)
                changed_content_types.append(content_type.id)

        counts = self.cascade.delete(tx, entity)
        entity.delete_date = from_ms(now_ms())
        self._invalidate_after_commit(scope, entity.id)

        logger.info(
            f"Deleted data type {entity.id}",
            extra={
                "data_type_id": entity.id,
                "content_types_changed": changed_content_types,
                "property_types_removed": counts["property_types"],
            },
        )

    def move(
        self,
        entity: DataTypeDefinition,
        container: Optional[EntityContainer] = None,
    ) -> List[MoveEventInfo]:
        """Move a data type under a container, or to the root.

        Writes placement only; a pending rename still needs save().

        Returns:
            MoveEventInfo for the data type and each descendant

        Raises:
            MoveNotAllowedError: If container is entity or below it
            MissingParentError: If container does not exist
        """
        parent_id = container.id if container is not None else ROOT_ID
        return self._move(entity, parent_id)

    # Pre-values

    def get_pre_values_collection(self, data_type_id: int) -> PreValueCollection:
        """Materialized pre-values of a data type, served from cache.

        A data type without pre-values (or an unknown id) yields an
        empty sequence.
        """
        return self._cached_collection(self._scope(), data_type_id, self.cache.token())

    def add_or_update_pre_values(
        self,
        data_type: Union[DataTypeDefinition, int],
        values: DesiredPreValues,
    ) -> ReconcilePlan:
        """Converge a data type's stored pre-values to values.

        Args:
            data_type: The data type or its id
            values: Ordered alias -> PreValue mapping, or a collection

        Returns:
            The applied plan

        Raises:
            EntityNotFoundError: If given an id no data type has
            IdentityRequiredError: If given an unsaved data type
        """
        scope = self._scope()
        tx = scope.transaction

        if isinstance(data_type, int):
            data_type_id = data_type
            data_type = self.get(data_type_id)
            if data_type is None:
                raise EntityNotFoundError(data_type_id, self.object_type.value)

        plan = reconcile(self.pre_values.fetch_rows(tx, data_type.id), values)
        self.pre_values.apply(tx, data_type, plan)
        self._invalidate_after_commit(scope, data_type.id)
        return plan

    def find_pre_value_by_id(self, pre_value_id: int) -> Optional[PreValue]:
        """Look a pre-value up by its row id.

        Cached collections are scanned first; on a miss the owning data
        type is resolved from the store and its collection cached.
        """
        scope = self._scope()
        cached = self.cache.find_pre_value(pre_value_id)
        if cached is not None and not scope.is_stale(cached[0]):
            return cached[1]

        token = self.cache.token()
        found = self.pre_values.fetch_by_id(scope.transaction, pre_value_id)
        if found is None:
            return None
        data_type_id, _row = found
        return self._cached_collection(scope, data_type_id, token).find(pre_value_id)

    def get_pre_value_as_string(self, pre_value_id: int) -> str:
        """Value of a pre-value, or "" when it does not exist."""
        pre_value = self.find_pre_value_by_id(pre_value_id)
        if pre_value is None or pre_value.value is None:
            return ""
        return pre_value.value

    def _cached_collection(self, scope: Scope, data_type_id: int, token: int) -> PreValueCollection:
        # token is taken before the first store read of this lookup
        if scope.is_stale(data_type_id):
            return self._load_collection(scope.transaction, data_type_id)
        return self.cache.get_or_compute(
            data_type_id,
            lambda: self._load_collection(scope.transaction, data_type_id),
            token=token,
        )

    def _load_collection(self, tx: Transaction, data_type_id: int) -> PreValueCollection:
        rows = self.pre_values.fetch_rows(tx, data_type_id)
        return to_collection((row.alias, row.to_pre_value()) for row in rows)

    def _invalidate_after_commit(self, scope: Scope, data_type_id: int) -> None:
        scope.mark_stale(data_type_id)
        scope.on_commit(lambda: self.cache.invalidate(data_type_id))
