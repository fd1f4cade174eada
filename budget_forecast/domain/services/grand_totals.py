"""
Grand Totals Reducer - Pinned summary rows for the forecast view.

Folds every leaf row of the tree into one summary per forecastable
variant in a single pass. Rows of other variants contribute nothing to
a summary. Totals are recomputed in full after every change.
"""
from decimal import Decimal
from typing import List

from ..entities import FORECASTABLE_VARIANTS, ForecastVariant, GrandTotalRow
from .aggregation_tree import AggregationTree

GRAND_TOTAL_LABELS = {
    ForecastVariant.ACTUAL_COST: "Actual Cost Total",
    ForecastVariant.ORIGINAL_FORECAST: "Original Forecast Total",
    ForecastVariant.CURRENT_FORECAST: "Current Forecast Total",
}


def compute_grand_totals(tree: AggregationTree) -> List[GrandTotalRow]:
    """
    Sum budgets and bucket values per forecastable variant.

    Args:
        tree: Aggregation tree for the view

    Returns:
        [Actual Cost Total, Original Forecast Total, Current Forecast Total]
    """
    keys = tree.bucket_keys
    totals = {
        variant: GrandTotalRow(
            label=GRAND_TOTAL_LABELS[variant],
            variant=variant,
            values={key: Decimal("0.00") for key in keys},
        )
        for variant in FORECASTABLE_VARIANTS
    }

    for row in tree.leaf_rows():
        summary = totals.get(row.variant)
        if summary is None:
            continue
        summary.original_budget += row.original_budget or Decimal("0")
        summary.approved_cos += row.approved_cos or Decimal("0")
        for key in keys:
            summary.values[key] += row.values.get(key, Decimal("0"))

    return [totals[variant] for variant in FORECASTABLE_VARIANTS]
