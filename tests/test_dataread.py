"""
Tests for fetching, pivoting and processing a dataset.
"""
import pytest

from core.dataread import FileRowSource, InMemoryRowSource, is_file_dataset, read_dataset
from core.errors import ConfigurationError, DataUnavailable
from tests.conftest import SALES_ROWS


@pytest.fixture
def source():
    return InMemoryRowSource({"sales": SALES_ROWS})


def _read(registry, source, mode="all", **kwargs):
    args = {
        "pivot_filter": None,
        "load_table": None,
        "datapoint_col": "State",
        "graphtype": "bubble",
        "animation_col": None,
    }
    args.update(kwargs)
    return read_dataset(
        mode,
        "sales",
        args["pivot_filter"],
        args["load_table"],
        args["datapoint_col"],
        args["graphtype"],
        args["animation_col"],
        registry=registry,
        source=source,
        raw_data=args.get("raw_data"),
        categorical_values=args.get("categorical_values"),
    )


class TestReadDataset:
    def test_all_mode(self, registry, source):
        result = _read(registry, source)

        assert result.categorical_values["State"] == ["CA", "NY", "TX"]
        assert sorted(r["State"] for r in result.pivoted_data) == ["CA", "NY", "TX"]
        ca = next(r for r in result.processed_data if r["State"] == "CA")
        assert ca["Avg Price"] == 10
        assert ca["Sales (Avg)"] == 90

    def test_state_keys(self, registry, source):
        assert set(_read(registry, source).as_state()) == {"categoricalValues", "pivotedData", "processedData"}

    def test_filter_applied_before_pivot(self, registry, source):
        result = _read(registry, source, pivot_filter={"State": ["CA"]})

        assert [r["State"] for r in result.pivoted_data] == ["CA"]
        assert result.categorical_values["State"] == ["CA", "NY", "TX"]

    def test_increment_keeps_categorical_values(self, registry, source):
        result = _read(registry, source, mode="increment", categorical_values={"State": ["ZZ"]})
        assert result.categorical_values == {"State": ["ZZ"]}

    def test_animation_only_for_bubble(self, registry, source):
        bubble = _read(registry, source, animation_col="Year")
        line = _read(registry, source, graphtype="line", animation_col="Year")

        assert len(bubble.pivoted_data) == 5
        assert len(line.pivoted_data) == 3

    def test_load_table_applied(self, registry, source):
        result = _read(registry, source, load_table=[{"value": "__general__", "Load": 50}])
        ca = next(r for r in result.processed_data if r["State"] == "CA")
        assert ca["Sales"] == pytest.approx(135)

    def test_raw_data_override(self, registry):
        result = _read(registry, None, raw_data=[{"State": "WA", "Sales": 1, "Units": 1}])
        assert [r["State"] for r in result.pivoted_data] == ["WA"]

    def test_configuration_errors(self, registry, source):
        with pytest.raises(ConfigurationError):
            _read(registry, source, mode="bogus")
        with pytest.raises(ConfigurationError):
            _read(registry, source, datapoint_col=None)
        with pytest.raises(ConfigurationError):
            read_dataset("all", "nope", None, None, "State", "bubble", None, registry=registry, source=source)

    def test_unavailable_data_gives_empty_result(self, registry):
        result = _read(registry, InMemoryRowSource(), mode="increment", categorical_values={"State": ["CA"]})

        assert result.pivoted_data == []
        assert result.processed_data == []
        assert result.categorical_values == {"State": ["CA"]}


class TestRowSources:
    def test_file_source_reads_csv(self, tmp_path):
        (tmp_path / "calls.csv").write_text("Team,Calls\nA,3\nB,\n", encoding="utf-8")
        rows = FileRowSource(tmp_path).read("calls.csv")

        assert rows[0] == {"Team": "A", "Calls": "3"}
        assert rows[1]["Calls"] is None

    def test_csv_cells_keep_their_text(self, tmp_path):
        """Blank cells must not turn 2020 into 2020.0, and codes keep leading zeros."""
        (tmp_path / "calls.csv").write_text("Team,Year,Zip,Calls\nA,2020,02134,1\nA,,02134,2\n", encoding="utf-8")
        rows = FileRowSource(tmp_path).read("calls.csv")

        assert rows[0]["Year"] == "2020"
        assert rows[1]["Year"] is None
        assert rows[0]["Zip"] == "02134"

    def test_csv_text_cells_aggregate_with_raw_keys(self, tmp_path, registry):
        (tmp_path / "sales").write_text(
            "State,Year,Sales,Units\nCA,2020,100,10\nCA,,50,5\n", encoding="utf-8"
        )
        result = read_dataset(
            "csv", "sales", None, None, "State", "bubble", None,
            registry=registry, source=FileRowSource(tmp_path),
        )
        ca = result.pivoted_data[0]

        assert ca["State"] == "CA"
        assert ca["Year:2020"] == 1
        assert "Year:2020.0" not in ca
        assert ca["Sales"] == 150
        assert result.categorical_values["Year"] == ["2020"]

    def test_file_source_reads_json(self, tmp_path):
        (tmp_path / "calls.json").write_text('[{"Team": "A", "Calls": 3}]', encoding="utf-8")
        assert FileRowSource(tmp_path).read("calls.json") == [{"Team": "A", "Calls": 3}]

    def test_missing_file(self, tmp_path):
        with pytest.raises(DataUnavailable):
            FileRowSource(tmp_path).read("missing.csv")

    def test_in_memory_unknown_dataset(self):
        with pytest.raises(DataUnavailable):
            InMemoryRowSource().read("sales")

    def test_is_file_dataset(self):
        assert is_file_dataset("sales.CSV")
        assert is_file_dataset("calls.json")
        assert not is_file_dataset("sales")
        assert not is_file_dataset(None)
