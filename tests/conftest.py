"""Shared catalogs and rows for the pivot tests."""
import pytest

from core.metadata import DatasetMetadata, MetadataRegistry

STATE_GENDER_SPEC = {
    "alias": "State Sales",
    "columns": {
        "State": {"type": "Categorical", "datapoint": True},
        "Gender": {"type": "Categorical"},
        "Sales": {"type": "Numeric"},
    },
}

STATE_GENDER_ROWS = [
    {"State": "NY", "Gender": "F", "Sales": 10},
    {"State": "NY", "Gender": "M", "Sales": 20},
    {"State": "CA", "Gender": "F", "Sales": 5},
]

SALES_SPEC = {
    "alias": "Sales",
    "defaultDatapoint": "State",
    "columns": {
        "State": {"type": "Categorical", "datapoint": True, "summary": True, "subtype": "Geo"},
        "Region": {"type": "Categorical", "datapoint": True, "noPareto": True},
        "Gender": {"type": "Categorical", "summary": True, "defaultColorValue": "F"},
        "Year": {"type": "Categorical", "animation": True, "noAxis": True, "noWhatIf": True},
        "Sales": {"type": "Numeric", "summary": True, "whatIfTarget": "Load", "defaultXValue": "self"},
        "Units": {"type": "Numeric", "whatIfTarget": "Load", "defaultYValue": "self"},
        "Price": {
            "type": "Numeric",
            "alias": "Avg Price",
            "noWhatIf": True,
            "calculated": {"fields": ["Sales", "Units"], "transform": "ratio"},
        },
    },
}

SALES_ROWS = [
    {"State": "CA", "Region": "West", "Gender": "F", "Year": 2020, "Sales": 100, "Units": 10},
    {"State": "CA", "Region": "West", "Gender": "M", "Year": 2020, "Sales": 50, "Units": 5},
    {"State": "CA", "Region": "West", "Gender": "F", "Year": 2021, "Sales": 120, "Units": 12},
    {"State": "NY", "Region": "East", "Gender": "F", "Year": 2020, "Sales": 80, "Units": 4},
    {"State": "NY", "Region": "East", "Gender": "M", "Year": 2021, "Sales": 40, "Units": 2},
    {"State": "TX", "Region": "South", "Gender": "M", "Year": 2021, "Sales": 90, "Units": 9},
]


@pytest.fixture
def state_gender_metadata():
    return DatasetMetadata.from_dict("state_gender", STATE_GENDER_SPEC)


@pytest.fixture
def state_gender_rows():
    return [dict(r) for r in STATE_GENDER_ROWS]


@pytest.fixture
def sales_metadata():
    return DatasetMetadata.from_dict("sales", SALES_SPEC)


@pytest.fixture
def sales_rows():
    return [dict(r) for r in SALES_ROWS]


@pytest.fixture
def registry(sales_metadata, state_gender_metadata):
    return MetadataRegistry({"sales": sales_metadata, "state_gender": state_gender_metadata})
