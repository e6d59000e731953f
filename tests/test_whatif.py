"""
Tests for what-if load redistribution.
"""
import pytest

from core.constants import GENERAL_IMPROVEMENT
from core.whatif import (
    get_fraction_of_total,
    get_load_choices,
    get_target_table,
    load_table_changed,
    new_load_row,
    preprocess,
)


class TestRedistribution:
    """Scaling whatIfTarget numerics by a categorical share"""

    def test_general_improvement_scales_everything(self, sales_metadata):
        rows = preprocess([{"Sales": 100, "Units": 10}], [{"value": GENERAL_IMPROVEMENT, "Load": 50}], sales_metadata)
        assert rows[0]["Sales"] == pytest.approx(50)
        assert rows[0]["Units"] == pytest.approx(5)

    def test_partial_share_removed(self, sales_metadata):
        """F is 40% of the row; removing F's load leaves 60%"""
        row = {"Gender:F": 4, "Gender:M": 6, "Sales": 100}
        rows = preprocess([row], [{"value": "Gender:F", "Load": 0}], sales_metadata)

        assert rows[0]["Sales"] == pytest.approx(60)
        assert "Units" not in rows[0]

    def test_full_load_is_unchanged(self, sales_metadata):
        row = {"Gender:F": 4, "Gender:M": 6, "Sales": 100}
        rows = preprocess([row], [{"value": "Gender:F", "Load": 100}], sales_metadata)
        assert rows[0]["Sales"] == pytest.approx(100)

    def test_rows_apply_in_order(self, sales_metadata):
        row = {"Gender:F": 4, "Gender:M": 6, "Sales": 100}
        table = [{"value": GENERAL_IMPROVEMENT, "Load": 50}, {"value": "Gender:F", "Load": 0}]
        rows = preprocess([row], table, sales_metadata)
        assert rows[0]["Sales"] == pytest.approx(30)

    def test_no_load_table_copies_rows(self, sales_metadata):
        data = [{"Sales": 1}]
        rows = preprocess(data, None, sales_metadata)
        assert rows == data
        assert rows[0] is not data[0]


class TestFractionOfTotal:
    def test_share_of_prefixed_keys(self):
        assert get_fraction_of_total("Gender:F", {"Gender:F": 1, "Gender:M": 3}) == 0.25

    def test_grouped_by_the_variable(self):
        """A row grouped by Gender is all F or not F at all"""
        assert get_fraction_of_total("Gender:F", {"Gender": "F", "Sales": 5}) == 1.0
        assert get_fraction_of_total("Gender:M", {"Gender": "F", "Sales": 5}) == 0.0

    def test_zero_total(self):
        assert get_fraction_of_total("Gender:F", {"Sales": 5}) == 0.0

    def test_general(self):
        assert get_fraction_of_total(GENERAL_IMPROVEMENT, {}) == 1.0


class TestTargetTable:
    def test_empty(self, sales_metadata):
        table_map = sales_metadata.get_reverse_map("whatIfTarget")
        assert get_target_table(None, table_map, sales_metadata) is None
        assert get_target_table([], table_map, sales_metadata) is None
        assert get_target_table([{"value": "Gender:F"}], table_map, sales_metadata) is None

    def test_non_numeric_load_is_ignored(self, sales_metadata):
        table_map = sales_metadata.get_reverse_map("whatIfTarget")
        table = get_target_table([{"value": "Gender:F", "Load": "lots"}, {"value": "Gender:M", "Load": "80"}], table_map, sales_metadata)
        assert table == {"Gender:F": [], "Gender:M": [("Sales", 80.0), ("Units", 80.0)]}


class TestLoadTableHelpers:
    def test_new_load_row(self, sales_metadata):
        assert new_load_row("Gender:F", sales_metadata) == {"value": "Gender:F", "Load": 100}

    def test_load_choices(self, sales_metadata):
        choices = get_load_choices(sales_metadata, {"State": ["CA"], "Gender": ["F"], "Year": [2020]})
        assert [c["name"] for c in choices] == [GENERAL_IMPROVEMENT, "State:CA", "Gender:F"]

    def test_load_table_changed(self):
        table = [{"value": "Gender:F", "Load": 50}]
        assert not load_table_changed(None, None)
        assert load_table_changed(None, table)
        assert not load_table_changed(table, [dict(table[0])])
        assert load_table_changed(table, [{"value": "Gender:F", "Load": 40}])
