"""
Domain Layer - Core entities and services for budget forecasting.

This module contains:
- entities/: Value objects (CostCodeRecord, TimeBucket, ForecastRow, GrandTotalRow)
- services/: Bucket generation, distribution, row building, aggregation and editing
"""

from .entities.time_bucket import TimeBucket
from .entities.cost_code_record import CostCodeRecord, DistributionMethod
from .entities.forecast_row import ForecastRow, ForecastVariant, GrandTotalRow, RowPath, RowSlot

__all__ = [
    'TimeBucket',
    'CostCodeRecord', 'DistributionMethod',
    'ForecastRow', 'ForecastVariant', 'GrandTotalRow', 'RowPath', 'RowSlot',
]
