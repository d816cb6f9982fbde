"""
Unit tests for materializing pre-value collections.

Tests cover:
- Mapping vs sequence selection
- Degradation on empty, mixed and duplicate aliases
- Ordering and lookups
"""

import pytest

from cmsdb.datatype_store.models import (
    PreValue,
    PreValueMapping,
    PreValueSequence,
    to_collection,
)


def rows(*aliases):
    """(alias, PreValue) rows with ids and sort orders 1..n."""
    return [
        (alias, PreValue(id=i, value=f"v{i}", sort_order=i))
        for i, alias in enumerate(aliases, start=1)
    ]


class TestToCollection:
    """Tests for to_collection()."""

    def test_unique_aliases_give_mapping(self):
        collection = to_collection(rows("min", "max"))

        assert isinstance(collection, PreValueMapping)
        assert collection["min"].value == "v1"
        assert collection["max"].value == "v2"

    def test_all_empty_aliases_give_sequence(self):
        collection = to_collection(rows("", "", ""))

        assert isinstance(collection, PreValueSequence)
        assert [pv.id for pv in collection] == [1, 2, 3]

    def test_duplicate_alias_degrades_to_sequence(self):
        """['x', 'y', 'x'] is array-form, not a mapping."""
        collection = to_collection(rows("x", "y", "x"))

        assert isinstance(collection, PreValueSequence)
        assert len(collection) == 3

    def test_mixed_aliases_give_sequence(self):
        collection = to_collection(rows("x", "", "y"))

        assert isinstance(collection, PreValueSequence)

    def test_whitespace_and_none_count_as_empty(self):
        assert isinstance(to_collection(rows("a", "  ")), PreValueSequence)
        assert isinstance(to_collection(rows(None, None)), PreValueSequence)

    def test_empty_input_gives_empty_sequence(self):
        collection = to_collection([])

        assert isinstance(collection, PreValueSequence)
        assert len(collection) == 0

    def test_ordered_by_sort_order(self):
        """Input order does not matter, sort_order does."""
        unordered = [
            ("b", PreValue(id=2, value="second", sort_order=2)),
            ("a", PreValue(id=1, value="first", sort_order=1)),
        ]

        collection = to_collection(unordered)

        assert list(collection.as_dict()) == ["a", "b"]
        assert [pv.value for pv in collection] == ["first", "second"]

    def test_sequence_as_dict_uses_index_keys(self):
        collection = to_collection(rows("", ""))

        assert list(collection.as_dict()) == ["0", "1"]

    def test_find_by_id(self):
        mapping = to_collection(rows("a", "b"))
        sequence = to_collection(rows("", ""))

        assert mapping.find(2).value == "v2"
        assert sequence.find(1).value == "v1"
        assert mapping.find(99) is None

    def test_mapping_missing_alias(self):
        with pytest.raises(KeyError):
            to_collection(rows("a"))["b"]
