"""
Integration tests for DataTypeService.

Tests cover:
- Events published after commit (and never after rollback)
- Combined save with pre-values
- Container operations
- Joining an ambient scope
"""

import pytest

from cmsdb.datatype_store.errors import (
    DataTypeStoreError,
    EntityNotFoundError,
    MissingParentError,
)
from cmsdb.datatype_store.events import (
    DataTypeDeleted,
    DataTypeMoved,
    DataTypeSaved,
    PreValuesSaved,
)
from cmsdb.datatype_store.models import (
    DataTypeDefinition,
    ObjectType,
    PreValue,
    PreValueMapping,
)
from cmsdb.datatype_store.repositories import DataTypeQuery


def dropdown():
    return DataTypeDefinition(name="Dropdown", property_editor_alias="dropdown")


class TestDataTypeService:
    """Tests for data type operations."""

    def test_save_publishes_saved(self, service, publisher):
        data_type = service.save(dropdown())

        assert publisher.events == [
            DataTypeSaved(
                entity_id=data_type.id,
                key=data_type.key,
                object_type=ObjectType.DATA_TYPE.value,
            )
        ]

    def test_failed_save_publishes_nothing(self, service, publisher):
        broken = DataTypeDefinition(name="Broken", parent_id=999)

        with pytest.raises(MissingParentError):
            service.save(broken)

        assert publisher.events == []

    def test_reads(self, service):
        data_type = service.save(dropdown())

        assert service.get(data_type.id).name == "Dropdown"
        assert [d.id for d in service.get_all()] == [data_type.id]
        assert [d.id for d in service.get_all(data_type.id)] == [data_type.id]
        assert service.get_by_query(DataTypeQuery(property_editor_alias="nothing")) == []

    def test_save_with_pre_values(self, service, publisher):
        data_type = service.save_with_pre_values(
            dropdown(), {"items": PreValue(value="a,b"), "multiple": PreValue(value="0")}
        )

        collection = service.get_pre_values(data_type.id)
        assert isinstance(collection, PreValueMapping)
        assert collection["items"].value == "a,b"
        assert [type(event) for event in publisher.events] == [DataTypeSaved, PreValuesSaved]

    def test_save_pre_values(self, service, publisher):
        data_type = service.save(dropdown())
        publisher.clear()

        plan = service.save_pre_values(data_type.id, {"items": PreValue(value="x")})

        assert len(plan.to_insert) == 1
        assert publisher.events == [PreValuesSaved(entity_id=data_type.id)]

    def test_get_pre_value_as_string(self, service):
        data_type = service.save_with_pre_values(dropdown(), {"items": PreValue(value="a,b")})
        pre_value_id = service.get_pre_values(data_type.id)["items"].id

        assert service.get_pre_value_as_string(pre_value_id) == "a,b"
        assert service.get_pre_value_as_string(12345) == ""

    def test_delete_publishes_deleted(self, service, publisher):
        data_type = service.save(dropdown())
        publisher.clear()

        service.delete(data_type)

        assert publisher.of_type(DataTypeDeleted) == [
            DataTypeDeleted(
                entity_id=data_type.id,
                key=data_type.key,
                object_type=ObjectType.DATA_TYPE.value,
            )
        ]
        assert service.get(data_type.id) is None

    def test_move_publishes_every_node(self, service, publisher):
        folder = service.create_container("Lists")
        data_type = service.save(dropdown())
        original_path = data_type.path
        publisher.clear()

        moves = service.move(data_type, folder)

        (event,) = publisher.of_type(DataTypeMoved)
        assert len(event.moves) == len(moves) == 1
        assert event.moves[0].original_path == original_path
        assert event.moves[0].path == f"{folder.path},{data_type.id}"
        assert event.to_dict()["moves"][0]["parent_id"] == folder.id

    def test_joins_ambient_scope(self, scopes, service, publisher):
        """Inside an outer scope, events wait for the outer commit."""
        with scopes.create_scope():
            service.save(dropdown())
            assert publisher.events == []

        assert len(publisher.of_type(DataTypeSaved)) == 1

    def test_outer_rollback_discards_everything(self, scopes, service, publisher):
        with pytest.raises(RuntimeError):
            with scopes.create_scope():
                service.save(dropdown())
                raise RuntimeError("abort")

        assert publisher.events == []
        assert service.get_all() == []


class TestContainers:
    """Tests for container operations."""

    def test_create_container(self, service, publisher):
        folder = service.create_container("Lists")

        assert folder.has_identity
        assert folder.path == f"-1,{folder.id}"
        assert publisher.events[0].object_type == ObjectType.DATA_TYPE_CONTAINER.value

    def test_nested_container(self, service):
        parent = service.create_container("Lists")
        child = service.create_container("Choices", parent_id=parent.id)

        assert child.path == f"{parent.path},{child.id}"
        assert child.level == 3

    def test_rename_container(self, service):
        folder = service.create_container("Lists")
        service.create_container("Other")

        renamed = service.rename_container(folder.id, "other")

        assert renamed.name == "other (1)"
        assert [node.name for node in service.get_children()] == ["other (1)", "Other"]

    def test_rename_unknown_container(self, service):
        with pytest.raises(EntityNotFoundError):
            service.rename_container(999, "Anything")

    def test_delete_empty_container(self, service, publisher):
        folder = service.create_container("Lists")
        publisher.clear()

        service.delete_container(folder.id)

        assert service.get_children() == []
        assert publisher.of_type(DataTypeDeleted)[0].entity_id == folder.id

    def test_delete_non_empty_container(self, service, publisher):
        folder = service.create_container("Lists")
        data_type = dropdown()
        data_type.parent_id = folder.id
        service.save(data_type)
        publisher.clear()

        with pytest.raises(DataTypeStoreError) as exc_info:
            service.delete_container(folder.id)

        assert exc_info.value.code == "CONTAINER_NOT_EMPTY"
        assert publisher.events == []
        assert [node.id for node in service.get_children(folder.id)] == [data_type.id]

    def test_move_container(self, service, publisher):
        source = service.create_container("Source")
        target = service.create_container("Target")
        data_type = dropdown()
        data_type.parent_id = source.id
        service.save(data_type)
        publisher.clear()

        moves = service.move_container(source, target)

        assert [move.entity_id for move in moves] == [source.id, data_type.id]
        assert service.get(data_type.id).path == f"{target.path},{source.id},{data_type.id}"
        assert len(publisher.of_type(DataTypeMoved)) == 1

    def test_get_children_lists_containers_first(self, service):
        service.save(dropdown())
        folder = service.create_container("Lists")

        children = service.get_children()

        assert [node.id for node in children][0] == folder.id
        assert len(children) == 2
