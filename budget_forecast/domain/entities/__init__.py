"""
Domain Entities - Core forecasting value objects.
"""

from .time_bucket import TimeBucket
from .cost_code_record import CostCodeRecord, DistributionMethod
from .forecast_row import (
    ForecastVariant, ForecastRow, GrandTotalRow, RowPath, RowSlot,
    FORECASTABLE_VARIANTS, DATE_FIELD_NAMES, VARIANCE_LABEL,
)

__all__ = [
    'TimeBucket',
    'CostCodeRecord', 'DistributionMethod',
    'ForecastVariant', 'ForecastRow', 'GrandTotalRow', 'RowPath', 'RowSlot',
    'FORECASTABLE_VARIANTS', 'DATE_FIELD_NAMES', 'VARIANCE_LABEL',
]
