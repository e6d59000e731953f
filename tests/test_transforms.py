"""
Tests for the named transform registries.
"""
import pytest

from core.errors import ConfigurationError
from core.transforms import (
    CALCULATIONS,
    calculation,
    get_calculation,
    get_dataset_transform,
    get_pre_transform,
    percent,
    ratio,
    share_of_total,
    sort_ascending,
)


class TestRegistry:
    def test_lookup(self):
        assert get_calculation("ratio") is ratio
        assert get_pre_transform("sort_ascending") is sort_ascending
        assert get_dataset_transform("monthly_timeline") is not None

    def test_none_means_no_transform(self):
        assert get_calculation(None) is None

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError):
            get_pre_transform("shuffle")

    def test_register(self):
        @calculation("test_constant")
        def constant(row, fields, data, prev):
            return 42

        try:
            assert get_calculation("test_constant")({}, [], [], {}) == 42
        finally:
            CALCULATIONS.pop("test_constant")


class TestCalculations:
    def test_ratio_null_safety(self):
        assert ratio({"a": 1, "b": 0}, ["a", "b"], [], {}) is None
        assert ratio({"b": 2}, ["a", "b"], [], {}) is None
        assert ratio({"a": 1, "b": 4}, ["a", "b"], [], {}) == 0.25

    def test_percent(self):
        assert percent({"a": 1, "b": 4}, ["a", "b"], [], {}) == 25

    def test_share_of_total(self):
        data = [{"a": 1}, {"a": 3}]
        assert share_of_total(data[1], ["a"], data, {}) == 0.75
        assert share_of_total({"a": 0}, ["a"], [{"a": 0}], {}) is None


class TestPreTransforms:
    def test_missing_values_sort_last(self):
        data = [{"a": 2}, {"a": None}, {"a": 1}]
        assert [r["a"] for r in sort_ascending(data, ["a"])] == [1, 2, None]
