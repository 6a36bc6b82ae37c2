"""Tests for key filtering."""

import pytest

from age_env import filters

VALUES = {"A": "1", "B": "2", "C": "3"}


class TestApply:
    """Tests for apply."""

    def test_no_filters(self):
        assert filters.apply(VALUES) == VALUES

    def test_only(self):
        assert filters.apply(VALUES, only=["A", "C"]) == {"A": "1", "C": "3"}

    def test_only_unknown_keys_are_dropped(self):
        assert filters.apply(VALUES, only=["A", "NOPE"]) == {"A": "1"}

    def test_exclude(self):
        assert filters.apply(VALUES, exclude=["B"]) == {"A": "1", "C": "3"}

    def test_only_before_exclude(self):
        assert filters.apply(VALUES, only=["A", "B"], exclude=["B"]) == {"A": "1"}

    def test_empty_only_keeps_nothing(self):
        assert filters.apply(VALUES, only=set()) == {}

    def test_empty_exclude_keeps_everything(self):
        assert filters.apply(VALUES, exclude=set()) == VALUES

    def test_input_untouched(self):
        original = dict(VALUES)
        filters.apply(VALUES, only=["A"], exclude=["A"])
        assert VALUES == original

    @pytest.mark.parametrize("only", [None, ["A"], ["A", "B"], []])
    @pytest.mark.parametrize("exclude", [None, ["A"], ["B", "C"], []])
    def test_composes_left_to_right(self, only, exclude):
        staged = filters.apply(filters.apply(VALUES, only, None), None, exclude)
        assert staged == filters.apply(VALUES, only, exclude)


class TestIsFiltered:
    """Tests for is_filtered."""

    def test_unfiltered(self):
        assert not filters.is_filtered()

    def test_filtered(self):
        assert filters.is_filtered(only=["A"])
        assert filters.is_filtered(exclude=[])
