"""
Tests for grouping raw rows by a datapoint column.
"""
import pytest

from core.aggregate import get_categorical_values, get_values_by_datapoint, pivot, to_number
from core.dates import date_string_to_epoch
from core.errors import ConfigurationError
from core.metadata import DatasetMetadata


class TestValuesByDatapoint:
    """Aggregated records per datapoint value"""

    def test_state_gender_scenario(self, state_gender_rows, state_gender_metadata):
        """NY/CA rows collapse into counts, sums and record counts"""
        records = pivot(state_gender_rows, "State", state_gender_metadata)
        by_state = {r["State"]: r for r in records}

        assert by_state["NY"] == {"State": "NY", "Gender:F": 1, "Gender:M": 1, "Sales": 30, "# Records": 2}
        assert by_state["CA"] == {"State": "CA", "Gender:F": 1, "Sales": 5, "# Records": 1}

    def test_sums_and_counts_match_full_scan(self, sales_rows, sales_metadata):
        """Every count and sum equals a direct scan over matching rows"""
        groups = get_values_by_datapoint(sales_rows, "State", sales_metadata)

        for state, record in groups.items():
            matching = [r for r in sales_rows if r["State"] == state]
            assert record["# Records"] == len(matching)
            assert record["Sales"] == sum(r["Sales"] for r in matching)
            assert record["Units"] == sum(r["Units"] for r in matching)
            for gender in ("F", "M"):
                expected = sum(1 for r in matching if r["Gender"] == gender)
                assert record.get(f"Gender:{gender}", 0) == expected

    def test_datapoint_is_not_counted_as_categorical(self, state_gender_rows, state_gender_metadata):
        groups = get_values_by_datapoint(state_gender_rows, "State", state_gender_metadata)
        assert not any(key.startswith("State:") for record in groups.values() for key in record)

    def test_missing_values_are_skipped(self, state_gender_metadata):
        """Missing categoricals add no key; bad numerics count as zero"""
        rows = [
            {"State": "NY", "Gender": None, "Sales": "n/a"},
            {"State": "NY", "Gender": "F", "Sales": 7},
        ]
        groups = get_values_by_datapoint(rows, "State", state_gender_metadata)

        assert groups["NY"] == {"Gender:F": 1, "Sales": 7, "# Records": 2}

    def test_missing_datapoint_raises(self, state_gender_rows, state_gender_metadata):
        with pytest.raises(ConfigurationError):
            get_values_by_datapoint(state_gender_rows, None, state_gender_metadata)
        with pytest.raises(ConfigurationError):
            pivot(state_gender_rows, "", state_gender_metadata)

    def test_singletons_and_vectors(self):
        """Singletons keep the first value seen; vectors keep distinct values in order"""
        metadata = DatasetMetadata.from_dict(
            "agents",
            {
                "columns": {
                    "Team": {"type": "Categorical", "datapoint": True},
                    "Manager": {"type": "Singleton"},
                    "Skill": {"type": "Vector", "alias": "Skills"},
                }
            },
        )
        rows = [
            {"Team": "A", "Manager": None, "Skill": "billing"},
            {"Team": "A", "Manager": "Ann", "Skill": "sales"},
            {"Team": "A", "Manager": "Bob", "Skill": "billing"},
        ]
        groups = get_values_by_datapoint(rows, "Team", metadata)

        assert groups["A"]["Manager"] == "Ann"
        assert groups["A"]["Skills"] == ["billing", "sales"]

    def test_month_binner_groups_by_month_start(self):
        metadata = DatasetMetadata.from_dict(
            "calls",
            {
                "columns": {
                    "Date": {"type": "DateString", "datapoint": True, "binner": "byMonth"},
                    "Calls": {"type": "Numeric"},
                }
            },
        )
        rows = [
            {"Date": "1/15/2020", "Calls": 3},
            {"Date": "01/02/2020", "Calls": 4},
            {"Date": "2/1/2020", "Calls": 1},
        ]
        records = pivot(rows, "Date", metadata)
        by_month = {r["Date"]: r for r in records}

        january = date_string_to_epoch("01/01/2020")
        assert set(by_month) == {january, date_string_to_epoch("02/01/2020")}
        assert by_month[january]["Calls"] == 7
        assert by_month[january]["# Records"] == 2


class TestPivotAnimation:
    """One record per (frame, datapoint) when animating"""

    def test_frames_carry_animation_value(self, sales_rows, sales_metadata):
        records = pivot(sales_rows, "State", sales_metadata, animation_col="Year")
        keys = {(r["Year"], r["State"]) for r in records}

        assert keys == {(2020, "CA"), (2021, "CA"), (2020, "NY"), (2021, "NY"), (2021, "TX")}
        ca_2020 = next(r for r in records if r["Year"] == 2020 and r["State"] == "CA")
        assert ca_2020["Sales"] == 150
        assert ca_2020["# Records"] == 2

    def test_none_animation_is_plain_pivot(self, sales_rows, sales_metadata):
        assert pivot(sales_rows, "State", sales_metadata, "None") == pivot(sales_rows, "State", sales_metadata)


class TestCategoricalValues:
    def test_sorted_distinct_values(self, sales_rows, sales_metadata):
        values = get_categorical_values(sales_rows, sales_metadata)

        assert values["State"] == ["CA", "NY", "TX"]
        assert values["Gender"] == ["F", "M"]
        assert values["Year"] == [2020, 2021]

    def test_to_number(self):
        assert to_number("3.5") == 3.5
        assert to_number(None) == 0.0
        assert to_number(float("nan")) == 0.0
        assert to_number("abc") == 0.0
        assert to_number(10**400) == 0.0

    def test_unhashable_values_are_grouped_by_text(self, state_gender_metadata):
        rows = [
            {"State": ["NY", "NJ"], "Gender": "F", "Sales": 1},
            {"State": ["NY", "NJ"], "Gender": ["F"], "Sales": 2},
        ]
        records = pivot(rows, "State", state_gender_metadata)

        assert len(records) == 1
        assert records[0]["Sales"] == 3
        assert get_categorical_values(rows, state_gender_metadata)["State"] == ["['NY', 'NJ']"]
