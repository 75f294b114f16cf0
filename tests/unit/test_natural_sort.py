"""
Unit tests for numeric-aware name ordering.
"""

from profilekit.tools.natural_sort import (
    SENTINEL,
    natural_key,
    natural_sorted,
    numeric_prefix,
    renumber_sort_key,
)


class TestNumericPrefix:
    """Test cases for numeric_prefix and renumber_sort_key."""

    def test_numeric_prefix(self):
        """Test extraction of the leading number."""
        assert numeric_prefix("10 - intro.mp4") == 10
        assert numeric_prefix("007.jpg") == 7
        assert numeric_prefix("  3.png") == 3
        assert numeric_prefix("page12.png") is None
        assert numeric_prefix("") is None

    def test_sort_key_without_prefix(self):
        """Test that names without a prefix use the sentinel."""
        assert renumber_sort_key("Cover.jpg") == (SENTINEL, "cover.jpg")

    def test_renumber_order(self):
        """Test numeric prefixes first, in numeric order, then the rest by name."""
        names = ["cover.jpg", "10.jpg", "2.jpg", "Back.jpg", "1.jpg"]

        assert sorted(names, key=renumber_sort_key) == ["1.jpg", "2.jpg", "10.jpg", "Back.jpg", "cover.jpg"]

    def test_equal_prefixes_break_on_name(self):
        """Test that entries sharing a prefix are ordered by name."""
        names = ["1b.jpg", "01a.jpg", "1A.png"]

        assert sorted(names, key=renumber_sort_key) == ["01a.jpg", "1A.png", "1b.jpg"]


class TestNaturalSort:
    """Test cases for natural_key and natural_sorted."""

    def test_digit_runs_compare_numerically(self):
        """Test that page2 sorts before page10."""
        names = ["page10.png", "page2.png", "page1.png"]

        assert natural_sorted(names) == ["page1.png", "page2.png", "page10.png"]

    def test_case_insensitive(self):
        """Test that letter case does not affect the order."""
        assert natural_sorted(["b.png", "C.png", "A.png"]) == ["A.png", "b.png", "C.png"]

    def test_mixed_names_are_comparable(self):
        """Test that names mixing numbers and text sort without errors."""
        names = ["cover", "1", "x1", "01a"]

        assert natural_sorted(names) == ["1", "01a", "cover", "x1"]

    def test_key_function(self):
        """Test sorting objects by a name attribute."""
        items = [{"name": "ch 10"}, {"name": "ch 9"}]

        result = natural_sorted(items, key=lambda item: item["name"])

        assert [item["name"] for item in result] == ["ch 9", "ch 10"]

    def test_natural_key_parts(self):
        """Test the key structure."""
        assert natural_key("Vol2") == [(1, "vol"), (0, 2)]
