"""
Domain Services - Bucket generation, distribution, aggregation and editing.
"""

from .time_buckets import generate_time_buckets, month_key, month_label
from .forecast_distributor import ForecastDistributor, to_money
from .forecast_row_builder import ForecastRowBuilder, apply_row, GUIDANCE_DESCRIPTION
from .aggregation_tree import AggregationTree, CostCodeNode
from .grand_totals import compute_grand_totals, GRAND_TOTAL_LABELS
from .edit_session import EditSession, EditState, ForecastEditor
from .forecast_service import (
    ForecastService,
    load_forecast,
    begin_edit,
    set_field,
    confirm_edit,
    cancel_edit,
    grand_totals,
)

__all__ = [
    'generate_time_buckets',
    'month_key',
    'month_label',
    'ForecastDistributor',
    'to_money',
    'ForecastRowBuilder',
    'apply_row',
    'GUIDANCE_DESCRIPTION',
    'AggregationTree',
    'CostCodeNode',
    'compute_grand_totals',
    'GRAND_TOTAL_LABELS',
    'EditSession',
    'EditState',
    'ForecastEditor',
    # Orchestration
    'ForecastService',
    'load_forecast',
    'begin_edit',
    'set_field',
    'confirm_edit',
    'cancel_edit',
    'grand_totals',
]
