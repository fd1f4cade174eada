"""
Tabular views of a forecast aggregation tree for CLI and export.

Rows are flattened to one DataFrame row per tree row, with the rendered
path joined by ' / ' and one column per month bucket.
"""
from decimal import Decimal
from typing import List, Optional

import numpy as np
import pandas as pd

from budget_forecast.domain.entities import GrandTotalRow
from budget_forecast.domain.services import AggregationTree

SUMMARY_COLUMNS = ['original_budget', 'approved_cos', 'revised_budget', 'total', 'balance_to_finish']


def money_to_display(amount: Optional[Decimal]) -> str:
    """Format a dollar amount as a USD display string."""
    if amount is None or (isinstance(amount, float) and np.isnan(amount)):
        return ""
    if amount < 0:
        return f"-${abs(amount):,.2f}"
    return f"${amount:,.2f}"


def tree_to_dataframe(tree: AggregationTree) -> pd.DataFrame:
    """
    Flatten every row of the tree.

    Columns: path, forecast, method, start_date, end_date, the summary
    columns, then one column per bucket key.
    """
    keys = tree.bucket_keys
    records = []
    for path, row in tree.iter_rows():
        revised = tree.revised_budget(path)
        balance = tree.balance_to_finish(path)
        record = {
            'path': ' / '.join(path.segments),
            'forecast': row.variant.value,
            'method': row.method.value if row.method else None,
            'start_date': row.start_date,
            'end_date': row.end_date,
            'original_budget': _as_float(row.original_budget),
            'approved_cos': _as_float(row.approved_cos),
            'revised_budget': _as_float(revised),
            'total': float(tree.row_total(path)),
            'balance_to_finish': _as_float(balance),
        }
        for key in keys:
            record[key] = float(row.values.get(key, Decimal("0")))
        records.append(record)

    columns = ['path', 'forecast', 'method', 'start_date', 'end_date'] + SUMMARY_COLUMNS + keys
    return pd.DataFrame.from_records(records, columns=columns)


def grand_totals_to_dataframe(totals: List[GrandTotalRow]) -> pd.DataFrame:
    """One row per grand total with budget, bucket and to-complete columns."""
    keys = list(totals[0].values.keys()) if totals else []
    df = pd.DataFrame([
        {
            'label': total.label,
            'original_budget': float(total.original_budget),
            'approved_cos': float(total.approved_cos),
            'revised_budget': float(total.revised_budget),
            **{key: float(total.values[key]) for key in keys},
            'total': float(total.total),
            'forecast_to_complete': float(total.forecast_to_complete),
        }
        for total in totals
    ])
    return df.set_index('label') if not df.empty else df


def format_for_display(df: pd.DataFrame) -> pd.DataFrame:
    """Render every numeric column as USD strings."""
    display = df.copy()
    for column in display.select_dtypes(include=[np.number]).columns:
        display[column] = display[column].map(money_to_display)
    return display


def _as_float(amount: Optional[Decimal]) -> Optional[float]:
    return float(amount) if amount is not None else None
