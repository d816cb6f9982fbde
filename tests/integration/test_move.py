"""
Integration tests for moving data types and containers.

Tests cover:
- Subtree path and level rewriting
- MoveEventInfo records
- Cycle rejection leaving the store unchanged
- Tree invariants after a sequence of moves
"""

import pytest

from cmsdb.datatype_store.errors import MissingParentError, MoveNotAllowedError
from cmsdb.datatype_store.models import ROOT_ID, DataTypeDefinition, EntityContainer


def snapshot(scopes):
    """(id, parent_id, path, level, sort_order) of every non-root node."""
    with scopes.create_scope(read_only=True) as scope:
        rows = scope.transaction.fetch(
            "SELECT id, parent_id, path, level, sort_order FROM nodes WHERE id > 0 ORDER BY id"
        )
    return [tuple(row) for row in rows]


class TestMove:
    """Tests for subtree moves."""

    @pytest.fixture
    def tree(self, scopes, repository, containers):
        """
        -1
        ├── B (container)
        └── A (container)
            └── C (container)
                └── D (data type)
        """
        b = EntityContainer(name="B")
        a = EntityContainer(name="A")
        with scopes.create_scope():
            containers.save(b)
            containers.save(a)
            c = EntityContainer(name="C", parent_id=a.id)
            containers.save(c)
            d = DataTypeDefinition(name="D", parent_id=c.id, property_editor_alias="textbox")
            repository.create(d)
        return a, b, c, d

    def test_move_rewrites_descendants(self, scopes, containers, repository, tree):
        """A under P: A.path = P.path+A, C follows A, D follows C."""
        a, b, c, d = tree

        with scopes.create_scope():
            containers.move(a, b)
            moved_c = containers.get(c.id)
            moved_d = repository.get(d.id)

        assert a.parent_id == b.id
        assert a.path == f"{b.path},{a.id}"
        assert a.level == b.level + 1
        assert moved_c.path == f"{a.path},{c.id}"
        assert moved_c.level == a.level + 1
        assert moved_d.path == f"{moved_c.path},{d.id}"
        assert moved_d.level == moved_c.level + 1
        # Descendants keep their parents
        assert moved_c.parent_id == a.id
        assert moved_d.parent_id == c.id

    def test_move_returns_event_info(self, scopes, containers, tree):
        a, b, c, d = tree
        original = {a.id: a.path, c.id: c.path, d.id: d.path}

        with scopes.create_scope():
            moves = containers.move(a, b)

        assert [move.entity_id for move in moves] == [a.id, c.id, d.id]
        assert {move.entity_id: move.original_path for move in moves} == original
        assert [move.original_parent_id for move in moves] == [ROOT_ID, a.id, c.id]
        assert moves[0].entity is a
        assert moves[2].entity.path.endswith(f",{a.id},{c.id},{d.id}")

    def test_moved_node_appended_after_siblings(self, scopes, containers, repository, tree):
        a, b, c, d = tree
        with scopes.create_scope():
            sibling = DataTypeDefinition(name="Sibling", parent_id=b.id)
            repository.create(sibling)
            other = DataTypeDefinition(name="Other", parent_id=b.id)
            repository.create(other)

            repository.move(d, b)

        assert d.sort_order == other.sort_order + 1

    def test_move_data_type_to_root(self, scopes, repository, tree):
        _, _, _, d = tree

        with scopes.create_scope():
            moves = repository.move(d)

        assert len(moves) == 1
        assert d.parent_id == ROOT_ID
        assert d.path == f"-1,{d.id}"
        assert d.level == 2

    def test_move_under_descendant_rejected(self, scopes, containers, tree):
        """Nothing changes when the target is below the moved node."""
        a, _, c, _ = tree
        before = snapshot(scopes)

        with pytest.raises(MoveNotAllowedError):
            with scopes.create_scope():
                containers.move(a, c)

        assert snapshot(scopes) == before

    def test_move_under_itself_rejected(self, scopes, containers, tree):
        a = tree[0]
        before = snapshot(scopes)

        with pytest.raises(MoveNotAllowedError):
            with scopes.create_scope():
                containers.move(a, a)

        assert snapshot(scopes) == before

    def test_move_to_missing_parent(self, scopes, repository, tree):
        d = tree[3]

        with pytest.raises(MissingParentError):
            with scopes.create_scope():
                repository.move(d, EntityContainer(name="Ghost", id=999))

    def test_moved_entity_not_left_dirty(self, scopes, containers, tree):
        a, b, _, _ = tree

        with scopes.create_scope():
            containers.move(a, b)

        assert not a.is_dirty()

    def test_tree_invariants_after_moves(self, scopes, containers, repository, tree):
        """level == segment count and the path ends with the id, everywhere."""
        a, b, c, d = tree

        with scopes.create_scope():
            containers.move(a, b)
        with scopes.create_scope():
            containers.move(c, b)
        with scopes.create_scope():
            repository.move(d, a)
        with scopes.create_scope():
            containers.move(b)

        for node_id, parent_id, path, level, _ in snapshot(scopes):
            segments = path.split(",")
            assert level == len(segments)
            assert segments[-1] == str(node_id)
            assert segments[-2] == str(parent_id)

    def test_move_keeps_pending_rename_dirty(self, scopes, containers, repository, tree):
        """A move writes placement only; the rename lands on the next save."""
        _, b, _, d = tree
        d.name = "Renamed"

        with scopes.create_scope():
            repository.move(d, b)
            stored = repository.get(d.id)

        assert stored.name == "D"
        assert stored.parent_id == b.id
        assert d.is_property_dirty("name")
        assert not d.is_property_dirty("parent_id")

        with scopes.create_scope():
            repository.save(d)
            stored = repository.get(d.id)

        assert stored.name == "Renamed"
        assert stored.path == f"{b.path},{d.id}"


class TestReparentOnSave:
    """Changing parent_id and saving goes through the same cycle check as move."""

    @pytest.fixture
    def tree(self, scopes, repository, containers):
        a = EntityContainer(name="A")
        with scopes.create_scope():
            containers.save(a)
            c = EntityContainer(name="C", parent_id=a.id)
            containers.save(c)
            d = DataTypeDefinition(name="D", parent_id=c.id, property_editor_alias="textbox")
            repository.create(d)
        return a, c, d

    def test_container_saved_under_its_child_rejected(self, scopes, containers, tree):
        a, c, _ = tree
        before = snapshot(scopes)
        a.parent_id = c.id

        with pytest.raises(MoveNotAllowedError):
            with scopes.create_scope():
                containers.save(a)

        assert snapshot(scopes) == before

    def test_container_saved_under_itself_rejected(self, scopes, containers, tree):
        a = tree[0]
        before = snapshot(scopes)
        a.parent_id = a.id

        with pytest.raises(MoveNotAllowedError):
            with scopes.create_scope():
                containers.save(a)

        assert snapshot(scopes) == before

    def test_data_type_updated_under_itself_rejected(self, scopes, repository, tree):
        d = tree[2]
        before = snapshot(scopes)
        d.parent_id = d.id

        with pytest.raises(MoveNotAllowedError):
            with scopes.create_scope():
                repository.update(d)

        assert snapshot(scopes) == before

    def test_data_type_saved_under_other_container(self, scopes, repository, tree):
        a, _, d = tree
        d.parent_id = a.id

        with scopes.create_scope():
            repository.save(d)
            stored = repository.get(d.id)

        assert stored.parent_id == a.id
        assert stored.path == f"{a.path},{d.id}"
        assert stored.level == a.level + 1
