"""
Tests for DataFrame views of the forecast tree.
"""
import pytest
from datetime import date
from decimal import Decimal

from budget_forecast.domain.entities import CostCodeRecord
from budget_forecast.domain.services import compute_grand_totals, load_forecast
from budget_forecast.modules.forecast_view import (
    format_for_display, grand_totals_to_dataframe, money_to_display, tree_to_dataframe,
)


@pytest.fixture
def tree():
    return load_forecast([
        CostCodeRecord(
            cost_code="03-300",
            original_budget=Decimal("1200.00"),
            original_start=date(2025, 1, 1),
            original_end=date(2025, 3, 31),
            current_start=date(2025, 1, 1),
            current_end=date(2025, 3, 31),
            actual_costs={"2025-01": Decimal("250.00")},
        ),
    ])


class TestMoneyToDisplay:

    def test_positive(self):
        assert money_to_display(Decimal("1234.5")) == "$1,234.50"

    def test_negative(self):
        assert money_to_display(-15000.0) == "-$15,000.00"

    def test_missing(self):
        assert money_to_display(None) == ""
        assert money_to_display(float("nan")) == ""


class TestTreeToDataFrame:

    def test_columns(self, tree):
        df = tree_to_dataframe(tree)
        assert list(df.columns[:5]) == ["path", "forecast", "method", "start_date", "end_date"]
        assert list(df.columns[-3:]) == ["2025-01", "2025-02", "2025-03"]
        assert len(df) == 6

    def test_rows(self, tree):
        df = tree_to_dataframe(tree).set_index("path")
        assert df.loc["03-300 / Actual Cost", "2025-01"] == 250.0
        assert df.loc["03-300 / Original Forecast", "total"] == 1200.0
        assert df.loc["03-300 / Current Forecast / Variance to Actual", "forecast"] == "Variance"

    def test_display_formatting(self, tree):
        display = format_for_display(tree_to_dataframe(tree))
        row = display[display["path"] == "03-300 / Original Forecast"].iloc[0]
        assert row["2025-01"] == "$400.00"
        assert row["revised_budget"] == "$1,200.00"


class TestGrandTotalsToDataFrame:

    def test_indexed_by_label(self, tree):
        df = grand_totals_to_dataframe(compute_grand_totals(tree))
        assert list(df.index) == ["Actual Cost Total", "Original Forecast Total", "Current Forecast Total"]
        assert df.loc["Actual Cost Total", "forecast_to_complete"] == 950.0

    def test_empty(self):
        assert grand_totals_to_dataframe([]).empty
