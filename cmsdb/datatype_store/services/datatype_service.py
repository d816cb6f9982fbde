"""
Data type service.

Entry point for callers that do not manage scopes themselves. Each
public method opens one scope (or joins the ambient one), runs the
repository operations, and publishes change events once the scope has
committed.

Invariants:
    - One scope per call; repositories never open their own
    - Events are published after commit, never for a rolled-back call
    - Reads open read-only scopes
"""

from __future__ import annotations

import logging
from typing import List, Optional, Union

from ..errors import EntityNotFoundError
from ..events import (
    DataTypeDeleted,
    DataTypeEvent,
    DataTypeMoved,
    DataTypeSaved,
    EventPublisher,
    LoggingEventPublisher,
    MovedNode,
    PreValuesSaved,
)
from ..models import (
    ROOT_ID,
    DataTypeDefinition,
    EntityContainer,
    MoveEventInfo,
    PreValueCollection,
    TreeEntity,
)
from ..persistence import Scope, ScopeProvider
from ..repositories import (
    DataTypeDefinitionRepository,
    DataTypeQuery,
    EntityContainerRepository,
    ReconcilePlan,
)
from ..repositories.reconciler import DesiredPreValues

logger = logging.getLogger(__name__)


class DataTypeService:
    """Scoped, event-publishing facade over the data type repositories.

    Example:
        >>> service = DataTypeService(scopes, repository, InMemoryEventPublisher())
        >>> data_type = DataTypeDefinition(name="Dropdown", property_editor_alias="dropdown")
        >>> service.save_with_pre_values(data_type, {"items": PreValue(value="a,b")})
        >>> service.get_pre_values(data_type.id)["items"].value
        'a,b'
    """

    def __init__(
        self,
        scope_provider: ScopeProvider,
        repository: DataTypeDefinitionRepository,
        publisher: Optional[EventPublisher] = None,
        containers: Optional[EntityContainerRepository] = None,
    ) -> None:
        self.scope_provider = scope_provider
        self.repository = repository
        self.publisher = publisher or LoggingEventPublisher()
        self.containers = containers or EntityContainerRepository(scope_provider)

    def get(self, data_type_id: int) -> Optional[DataTypeDefinition]:
        with self.scope_provider.create_scope(read_only=True):
            return self.repository.get(data_type_id)

    def get_all(self, *data_type_ids: int) -> List[DataTypeDefinition]:
        with self.scope_provider.create_scope(read_only=True):
            return self.repository.get_many(*data_type_ids)

    def get_by_query(self, query: DataTypeQuery) -> List[DataTypeDefinition]:
        with self.scope_provider.create_scope(read_only=True):
            return self.repository.get_by_query(query)

    def get_children(self, parent_id: int = ROOT_ID) -> List[TreeEntity]:
        """Containers and data types directly under parent_id."""
        with self.scope_provider.create_scope(read_only=True):
            return self.containers.get_children(parent_id)

    def save(self, data_type: DataTypeDefinition) -> DataTypeDefinition:
        with self.scope_provider.create_scope() as scope:
            self.repository.save(data_type)
            self._publish_after_commit(scope, self._saved(data_type))
        return data_type

    def delete(self, data_type: DataTypeDefinition) -> None:
        with self.scope_provider.create_scope() as scope:
            self.repository.delete(data_type)
            self._publish_after_commit(
                scope,
                DataTypeDeleted(
                    entity_id=data_type.id,
                    key=data_type.key,
                    object_type=data_type.kind.value,
                ),
            )

    def move(
        self,
        data_type: DataTypeDefinition,
        container: Optional[EntityContainer] = None,
    ) -> List[MoveEventInfo]:
        with self.scope_provider.create_scope() as scope:
            moves = self.repository.move(data_type, container)
            self._publish_after_commit(scope, self._moved(moves))
        return moves

    def get_pre_values(self, data_type_id: int) -> PreValueCollection:
        with self.scope_provider.create_scope(read_only=True):
            return self.repository.get_pre_values_collection(data_type_id)

    def save_pre_values(
        self,
        data_type: Union[DataTypeDefinition, int],
        values: DesiredPreValues,
    ) -> ReconcilePlan:
        with self.scope_provider.create_scope() as scope:
            plan = self.repository.add_or_update_pre_values(data_type, values)
            data_type_id = data_type if isinstance(data_type, int) else data_type.id
            self._publish_after_commit(scope, PreValuesSaved(entity_id=data_type_id))
        return plan

    def save_with_pre_values(
        self,
        data_type: DataTypeDefinition,
        values: DesiredPreValues,
    ) -> DataTypeDefinition:
        """Save a data type and its pre-values in one scope."""
        with self.scope_provider.create_scope() as scope:
            self.repository.save(data_type)
            self.repository.add_or_update_pre_values(data_type, values)
            self._publish_after_commit(scope, self._saved(data_type))
            self._publish_after_commit(scope, PreValuesSaved(entity_id=data_type.id))
        return data_type

    def get_pre_value_as_string(self, pre_value_id: int) -> str:
        with self.scope_provider.create_scope(read_only=True):
            return self.repository.get_pre_value_as_string(pre_value_id)

    def create_container(self, name: str, parent_id: int = ROOT_ID) -> EntityContainer:
        container = EntityContainer(name=name, parent_id=parent_id)
        with self.scope_provider.create_scope() as scope:
            self.containers.save(container)
            self._publish_after_commit(scope, self._saved(container))
        return container

    def rename_container(self, container_id: int, name: str) -> EntityContainer:
        """Rename a container.

        Raises:
            EntityNotFoundError: If no container has container_id
        """
        with self.scope_provider.create_scope() as scope:
            container = self._require_container(container_id)
            container.name = name
            self.containers.save(container)
            self._publish_after_commit(scope, self._saved(container))
        return container

    def delete_container(self, container_id: int) -> None:
        """Delete an empty container.

        Raises:
            EntityNotFoundError: If no container has container_id
            DataTypeStoreError: CONTAINER_NOT_EMPTY if it has children
        """
        with self.scope_provider.create_scope() as scope:
            container = self._require_container(container_id)
            self.containers.delete(container)
            self._publish_after_commit(
                scope,
                DataTypeDeleted(
                    entity_id=container.id,
                    key=container.key,
                    object_type=container.kind.value,
                ),
            )

    def move_container(
        self,
        container: EntityContainer,
        parent: Optional[EntityContainer] = None,
    ) -> List[MoveEventInfo]:
        with self.scope_provider.create_scope() as scope:
            moves = self.containers.move(container, parent)
            self._publish_after_commit(scope, self._moved(moves))
        return moves

    def _require_container(self, container_id: int) -> EntityContainer:
        container = self.containers.get(container_id)
        if container is None:
            raise EntityNotFoundError(container_id, self.containers.object_type.value)
        return container

    def _publish_after_commit(self, scope: Scope, event: DataTypeEvent) -> None:
        logger.debug(f"Queued {type(event).__name__} until commit")
        scope.on_commit(lambda: self.publisher.publish(event))

    @staticmethod
    def _saved(entity: TreeEntity) -> DataTypeSaved:
        return DataTypeSaved(entity_id=entity.id, key=entity.key, object_type=entity.kind.value)

    @staticmethod
    def _moved(moves: List[MoveEventInfo]) -> DataTypeMoved:
        return DataTypeMoved(moves=tuple(MovedNode.from_move_info(move) for move in moves))
