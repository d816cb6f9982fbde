"""
Unit tests for unique name resolution.

Tests cover:
- Free names pass through unchanged
- Suffix numbering picks the smallest free number
- Case-insensitive comparison
- Excluding the entity being updated
"""

from cmsdb.datatype_store.repositories import get_unique_name


class TestGetUniqueName:
    """Tests for get_unique_name."""

    def test_free_name_unchanged(self):
        """A name nobody uses is returned as-is."""
        assert get_unique_name([(1, "Textstring")], "Dropdown") == "Dropdown"

    def test_no_existing_nodes(self):
        assert get_unique_name([], "Textstring") == "Textstring"

    def test_collision_gets_first_suffix(self):
        """First collision resolves to (1)."""
        assert get_unique_name([(1, "Text")], "Text") == "Text (1)"

    def test_smallest_free_suffix(self):
        """Gaps in the numbering are filled first."""
        existing = [(1, "Text"), (2, "Text (1)"), (3, "Text (3)")]

        assert get_unique_name(existing, "Text") == "Text (2)"

    def test_case_insensitive(self):
        """Names differing only in case collide."""
        assert get_unique_name([(1, "TEXT")], "text") == "text (1)"

    def test_suffixed_candidate_uses_base(self):
        """A colliding 'Text (1)' resolves against 'Text', not 'Text (1) (1)'."""
        existing = [(1, "Text"), (2, "Text (1)")]

        assert get_unique_name(existing, "Text (1)") == "Text (2)"

    def test_excluded_id_does_not_conflict(self):
        """An entity keeping its own name is not renamed."""
        assert get_unique_name([(5, "Text")], "Text", exclude_id=5) == "Text"

    def test_excluded_id_only_excludes_itself(self):
        existing = [(5, "Text"), (6, "Text (1)")]

        assert get_unique_name(existing, "Text (1)", exclude_id=5) == "Text (2)"

    def test_null_names_ignored(self):
        assert get_unique_name([(1, None)], "Text") == "Text"

    def test_resolution_is_idempotent(self):
        """Resolving an already-resolved name against the same set is stable."""
        existing = [(1, "Text"), (2, "Text (1)")]
        resolved = get_unique_name(existing, "Text")

        assert get_unique_name(existing, resolved) == resolved
