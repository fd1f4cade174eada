"""
Forecast Row Builder - Expands a cost code record into its six view rows.

Rows per cost code:
- Actual Cost: recorded actuals per bucket
- Forecast Guidance: preview of Current Forecast's method, never hand-edited
- Original Forecast: original budget spread over the original dates
- Variance to Actual (under Original): Actual - Original per bucket
- Current Forecast: revised budget spread over the current dates,
  leaving months with recorded actuals untouched
- Variance to Actual (under Current): Actual - Current per bucket
"""
import copy
import dataclasses
import logging
from decimal import Decimal
from typing import Dict, Mapping, Optional, Sequence

from ..entities import (
    CostCodeRecord, DistributionMethod, ForecastRow, ForecastVariant,
    RowSlot, TimeBucket,
)
from ..exceptions import InvalidDateRangeError
from .forecast_distributor import ForecastDistributor, to_money

logger = logging.getLogger(__name__)

GUIDANCE_DESCRIPTION = "Computed Guidance"


class ForecastRowBuilder:
    """
    Builds ForecastRows for one cost code against the view's bucket sequence.
    """

    def __init__(self, distributor: Optional[ForecastDistributor] = None):
        self.distributor = distributor or ForecastDistributor()

    @property
    def quantum(self) -> Decimal:
        return self.distributor.quantum

    # =========================================================================
    # Full Build
    # =========================================================================

    def build(
        self,
        record: CostCodeRecord,
        buckets: Sequence[TimeBucket],
        guidance_method: Optional[DistributionMethod] = None,
    ) -> Dict[RowSlot, ForecastRow]:
        """
        Build all six rows for a record.

        Args:
            record: Raw cost code inputs
            buckets: View-wide bucket sequence
            guidance_method: Method previewed by the guidance row
                (defaults to the record's current method)

        Returns:
            Mapping of every RowSlot to its row
        """
        keys = [bucket.key for bucket in buckets]
        actuals = self._project(record.actual_costs, keys, record.cost_code, "actual costs")

        actual = ForecastRow(
            cost_code=record.cost_code,
            variant=ForecastVariant.ACTUAL_COST,
            description=record.description,
            original_budget=record.original_budget,
            approved_cos=record.approved_cos,
            start_date=record.actual_start,
            end_date=record.actual_end,
            values=actuals,
        )

        original = ForecastRow(
            cost_code=record.cost_code,
            variant=ForecastVariant.ORIGINAL_FORECAST,
            original_budget=record.original_budget,
            approved_cos=record.approved_cos,
            start_date=record.original_start,
            end_date=record.original_end,
            method=record.original_method,
            values=self._forecast_values(
                record,
                record.original_start,
                record.original_end,
                record.original_method,
                self._project(record.original_forecast, keys, record.cost_code, "original forecast"),
                buckets,
            ),
        )

        current = ForecastRow(
            cost_code=record.cost_code,
            variant=ForecastVariant.CURRENT_FORECAST,
            original_budget=record.original_budget,
            approved_cos=record.approved_cos,
            start_date=record.current_start,
            end_date=record.current_end,
            method=record.current_method,
            values=self._forecast_values(
                record,
                record.current_start,
                record.current_end,
                record.current_method,
                self._project(record.current_forecast, keys, record.cost_code, "current forecast"),
                buckets,
                actual_costs=actuals,
            ),
        )

        guidance = self.guidance_row(
            current, actual, buckets, guidance_method or record.current_method
        )

        return {
            RowSlot.ACTUAL: actual,
            RowSlot.GUIDANCE: guidance,
            RowSlot.ORIGINAL: original,
            RowSlot.ORIGINAL_VARIANCE: self.variance_row(actual, original),
            RowSlot.CURRENT: current,
            RowSlot.CURRENT_VARIANCE: self.variance_row(actual, current),
        }

    # =========================================================================
    # Derived Rows
    # =========================================================================

    def guidance_row(
        self,
        current: ForecastRow,
        actual: ForecastRow,
        buckets: Sequence[TimeBucket],
        method: DistributionMethod,
    ) -> ForecastRow:
        """
        Preview what `method` would produce for the Current Forecast.

        Uses the current row's revised budget and dates, and leaves months
        that already have actuals at their current forecast value. Without
        a usable current date range the preview is all zeros.
        """
        method = DistributionMethod.parse(method)
        keys = [bucket.key for bucket in buckets]
        revised = (current.original_budget or Decimal("0")) + (current.approved_cos or Decimal("0"))

        if method == DistributionMethod.MANUAL:
            values = {key: to_money(current.values.get(key), self.quantum) for key in keys}
        elif current.start_date is None or current.end_date is None or current.start_date > current.end_date:
            values = {key: to_money(0, self.quantum) for key in keys}
        else:
            values = self.distributor.distribute(
                revised,
                current.start_date,
                current.end_date,
                method,
                buckets,
                actual_costs=actual.values,
                existing=current.values,
            )

        return ForecastRow(
            cost_code=current.cost_code,
            variant=ForecastVariant.FORECAST_GUIDANCE,
            description=GUIDANCE_DESCRIPTION,
            method=method,
            values=values,
        )

    @staticmethod
    def variance_row(actual: ForecastRow, forecast: ForecastRow) -> ForecastRow:
        """Per-bucket Actual minus Forecast; carries no budget or dates."""
        keys = list(forecast.values.keys())
        for key in actual.values:
            if key not in forecast.values:
                keys.append(key)
        return ForecastRow(
            cost_code=forecast.cost_code,
            variant=ForecastVariant.VARIANCE,
            compares_to=forecast.variant,
            values={
                key: actual.values.get(key, Decimal("0.00")) - forecast.values.get(key, Decimal("0.00"))
                for key in keys
            },
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _forecast_values(
        self,
        record: CostCodeRecord,
        start,
        end,
        method: DistributionMethod,
        stored: Dict[str, Decimal],
        buckets: Sequence[TimeBucket],
        actual_costs: Optional[Mapping[str, Decimal]] = None,
    ) -> Dict[str, Decimal]:
        if method == DistributionMethod.MANUAL or start is None or end is None:
            return stored
        try:
            return self.distributor.distribute(
                record.revised_budget(),
                start,
                end,
                method,
                buckets,
                actual_costs=actual_costs,
                existing=stored,
            )
        except InvalidDateRangeError as e:
            logger.warning(f"Cost code '{record.cost_code}': {e.message}; keeping stored values")
            return stored

    def _project(
        self,
        values: Mapping[str, Decimal],
        keys: Sequence[str],
        cost_code: str,
        label: str,
    ) -> Dict[str, Decimal]:
        """Zero-fill a stored map onto the bucket keys, dropping keys outside the window."""
        window = set(keys)
        dropped = [key for key in values if key not in window]
        if dropped:
            logger.warning(
                f"Cost code '{cost_code}': {label} outside the view window dropped: {sorted(dropped)}"
            )
        return {key: to_money(values.get(key), self.quantum) for key in keys}


def apply_row(record: CostCodeRecord, row: ForecastRow) -> CostCodeRecord:
    """
    Fold an edited row back into a copy of its record.

    Budget fields are shared by every forecastable row; dates, method and
    bucket values land on the edited variant's own fields. A guidance row
    commits its method and preview onto the Current Forecast.
    """
    updated = copy.deepcopy(record)

    if row.variant == ForecastVariant.FORECAST_GUIDANCE:
        return dataclasses.replace(
            updated,
            current_method=row.method,
            current_forecast=dict(row.values),
        )

    changes = {
        'original_budget': row.original_budget,
        'approved_cos': row.approved_cos,
    }
    if row.variant == ForecastVariant.ACTUAL_COST:
        changes.update(
            actual_start=row.start_date,
            actual_end=row.end_date,
            actual_costs=dict(row.values),
        )
    elif row.variant == ForecastVariant.ORIGINAL_FORECAST:
        changes.update(
            original_start=row.start_date,
            original_end=row.end_date,
            original_method=row.method or updated.original_method,
            original_forecast=dict(row.values),
        )
    elif row.variant == ForecastVariant.CURRENT_FORECAST:
        changes.update(
            current_start=row.start_date,
            current_end=row.end_date,
            current_method=row.method or updated.current_method,
            current_forecast=dict(row.values),
        )
    return dataclasses.replace(updated, **changes)
