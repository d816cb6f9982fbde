"""
Unit tests for entity models.

Tests cover:
- Dirty property tracking
- Identity
- Content type kinds and property type removal
"""

import pytest

from cmsdb.datatype_store.models import (
    ROOT_ID,
    ContentType,
    DataTypeDefinition,
    EntityContainer,
    ObjectType,
    PropertyGroup,
    PropertyType,
)


class TestDirtyTracking:
    """Tests for TreeEntity dirty tracking."""

    def test_new_entity_is_clean(self):
        data_type = DataTypeDefinition(name="Textstring", property_editor_alias="textbox")

        assert not data_type.is_dirty()
        assert data_type.parent_id == ROOT_ID

    def test_assignment_marks_dirty(self):
        data_type = DataTypeDefinition(name="Textstring")

        data_type.name = "Textarea"

        assert data_type.is_property_dirty("name")
        assert data_type.dirty_properties() == {"name"}

    def test_same_value_not_dirty(self):
        data_type = DataTypeDefinition(name="Textstring")

        data_type.name = "Textstring"

        assert not data_type.is_dirty()

    def test_reset_all(self):
        data_type = DataTypeDefinition(name="Textstring")
        data_type.name = "Textarea"
        data_type.parent_id = 5

        data_type.reset_dirty_properties()

        assert not data_type.is_dirty()

    def test_reset_selected(self):
        data_type = DataTypeDefinition(name="Textstring")
        data_type.name = "Textarea"
        data_type.parent_id = 5

        data_type.reset_dirty_properties("parent_id")

        assert data_type.dirty_properties() == {"name"}


class TestIdentity:
    """Tests for identity and kinds."""

    def test_has_identity(self):
        assert not DataTypeDefinition(name="a").has_identity
        assert DataTypeDefinition(name="a", id=3).has_identity

    def test_kinds(self):
        assert DataTypeDefinition(name="a").kind is ObjectType.DATA_TYPE
        assert EntityContainer(name="a").kind is ObjectType.DATA_TYPE_CONTAINER
        assert (
            ContentType(name="a", content_kind=ObjectType.MEDIA_TYPE).kind
            is ObjectType.MEDIA_TYPE
        )

    def test_keys_are_unique(self):
        assert DataTypeDefinition(name="a").key != DataTypeDefinition(name="a").key

    def test_content_type_rejects_other_kinds(self):
        with pytest.raises(ValueError):
            ContentType(name="a", content_kind=ObjectType.DATA_TYPE)


class TestRemovePropertyTypesUsing:
    """Tests for ContentType.remove_property_types_using."""

    @pytest.fixture
    def content_type(self):
        return ContentType(
            name="Article",
            alias="article",
            property_groups=[
                PropertyGroup(
                    name="Content",
                    property_types=[
                        PropertyType(alias="title", name="Title", data_type_id=1),
                        PropertyType(alias="body", name="Body", data_type_id=2),
                    ],
                )
            ],
            no_group_property_types=[
                PropertyType(alias="legacy", name="Legacy", data_type_id=1),
            ],
        )

    def test_removes_grouped_and_ungrouped(self, content_type):
        removed = content_type.remove_property_types_using(1)

        assert sorted(pt.alias for pt in removed) == ["legacy", "title"]
        assert [pt.alias for pt in content_type.property_types()] == ["body"]

    def test_groups_are_kept(self, content_type):
        content_type.remove_property_types_using(1)

        assert [group.name for group in content_type.property_groups] == ["Content"]

    def test_unreferenced_data_type(self, content_type):
        assert content_type.remove_property_types_using(99) == []
        assert len(list(content_type.property_types())) == 3
