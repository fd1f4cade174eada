"""
Forecast Repository - Data access layer for forecast cost codes.

Implements the storage collaborator of the forecasting view:
- Fetch a view's cost code records (cents -> Decimal dollars)
- Persist one edited forecast row, keyed by cost code + variant
- Upsert whole records for seeding and imports
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from budget_forecast.config import get_config
from budget_forecast.models import ForecastCostCode, ForecastBucketValue
from budget_forecast.domain.entities import (
    CostCodeRecord, DistributionMethod, ForecastRow, ForecastVariant,
    DATE_FIELD_NAMES, FORECASTABLE_VARIANTS,
)
from budget_forecast.domain.exceptions import CostCodeNotFoundError, RowNotEditableError
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_cents(amount) -> int:
    """Dollar amount -> integer cents, rounding half up."""
    if amount is None:
        return 0
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: Optional[int]) -> Decimal:
    return (Decimal(cents or 0) / 100).quantize(CENT)


class ForecastRepository(BaseRepository[ForecastCostCode]):
    """
    Repository for forecast cost codes and their monthly values.

    A view is identified by (project_id, tab); cost codes are unique
    within a view.
    """

    def __init__(self, session: Session):
        super().__init__(session, ForecastCostCode)

    def get_cost_code(self, project_id: str, tab: str, cost_code: str) -> Optional[ForecastCostCode]:
        return self.first_by(project_id=project_id, tab=tab, cost_code=cost_code)

    def get_by_view(self, project_id: str, tab: str) -> List[ForecastCostCode]:
        return self.session.query(ForecastCostCode).filter(
            ForecastCostCode.project_id == project_id,
            ForecastCostCode.tab == tab,
        ).order_by(ForecastCostCode.cost_code).all()

    # =========================================================================
    # Fetch
    # =========================================================================

    def get_records(self, project_id: str, tab: str) -> List[CostCodeRecord]:
        """
        Load every cost code record of a view.

        Args:
            project_id: Project identifier
            tab: View tab (e.g. 'gc-gr')

        Returns:
            Records ordered by cost code
        """
        records = [self._to_record(row) for row in self.get_by_view(project_id, tab)]
        logger.debug(f"Fetched {len(records)} records for {project_id}/{tab}")
        return records

    def _to_record(self, row: ForecastCostCode) -> CostCodeRecord:
        values: Dict[ForecastVariant, Dict[str, Decimal]] = {
            variant: {} for variant in FORECASTABLE_VARIANTS
        }
        for bucket in row.bucket_values:
            try:
                variant = ForecastVariant.parse(bucket.variant)
            except ValueError:
                logger.warning(
                    f"Cost code '{row.cost_code}': ignoring values of unknown variant '{bucket.variant}'"
                )
                continue
            values.setdefault(variant, {})[bucket.bucket_key] = from_cents(bucket.amount_cents)

        default_method = get_config().default_method
        return CostCodeRecord(
            cost_code=row.cost_code,
            description=row.description or "",
            original_budget=from_cents(row.original_budget_cents),
            approved_cos=from_cents(row.approved_cos_cents),
            actual_start=row.start_date,
            actual_end=row.end_date,
            original_start=row.original_start_date,
            original_end=row.original_end_date,
            current_start=row.current_start_date,
            current_end=row.current_end_date,
            current_method=DistributionMethod.parse(row.current_method or default_method),
            original_method=DistributionMethod.parse(row.original_method or default_method),
            actual_costs=values[ForecastVariant.ACTUAL_COST],
            original_forecast=values[ForecastVariant.ORIGINAL_FORECAST],
            current_forecast=values[ForecastVariant.CURRENT_FORECAST],
        )

    # =========================================================================
    # Persist
    # =========================================================================

    def update_forecast_row(self, row: ForecastRow, tab: str, project_id: str) -> ForecastCostCode:
        """
        Write one forecast row back to its cost code.

        Idempotent: writing the same row twice leaves storage unchanged.
        Budget fields are shared by every variant; dates, method and
        monthly values are written to the row's own variant only.

        Raises:
            CostCodeNotFoundError: If the cost code is not in the view
            RowNotEditableError: For guidance and variance rows
        """
        if row.variant not in FORECASTABLE_VARIANTS:
            raise RowNotEditableError(row.variant.value)

        entity = self.get_cost_code(project_id, tab, row.cost_code)
        if entity is None:
            raise CostCodeNotFoundError(row.cost_code)

        if row.original_budget is not None:
            entity.original_budget_cents = to_cents(row.original_budget)
        if row.approved_cos is not None:
            entity.approved_cos_cents = to_cents(row.approved_cos)

        start_name, end_name = DATE_FIELD_NAMES[row.variant]
        setattr(entity, start_name, row.start_date)
        setattr(entity, end_name, row.end_date)

        if row.method is not None:
            if row.variant == ForecastVariant.ORIGINAL_FORECAST:
                entity.original_method = row.method.value
            elif row.variant == ForecastVariant.CURRENT_FORECAST:
                entity.current_method = row.method.value

        self._write_values(entity, row.variant, row.values)
        self.flush()
        logger.info(f"Saved {row.variant.value} for '{row.cost_code}' ({project_id}/{tab})")
        return entity

    def upsert_record(self, project_id: str, tab: str, record: CostCodeRecord) -> ForecastCostCode:
        """
        Create or fully overwrite a cost code from a record.

        Returns:
            The stored cost code row
        """
        entity = self.get_cost_code(project_id, tab, record.cost_code)
        if entity is None:
            entity = self.add(ForecastCostCode(
                project_id=project_id,
                tab=tab,
                cost_code=record.cost_code,
            ))

        entity.description = record.description
        entity.original_budget_cents = to_cents(record.original_budget)
        entity.approved_cos_cents = to_cents(record.approved_cos)
        entity.start_date = record.actual_start
        entity.end_date = record.actual_end
        entity.original_start_date = record.original_start
        entity.original_end_date = record.original_end
        entity.current_start_date = record.current_start
        entity.current_end_date = record.current_end
        entity.original_method = record.original_method.value
        entity.current_method = record.current_method.value

        self._write_values(entity, ForecastVariant.ACTUAL_COST, record.actual_costs)
        self._write_values(entity, ForecastVariant.ORIGINAL_FORECAST, record.original_forecast)
        self._write_values(entity, ForecastVariant.CURRENT_FORECAST, record.current_forecast)
        self.flush()
        return entity

    def _write_values(
        self,
        entity: ForecastCostCode,
        variant: ForecastVariant,
        values: Mapping[str, Decimal],
    ) -> None:
        """Make the stored months of a variant match `values` exactly."""
        existing = {
            bucket.bucket_key: bucket
            for bucket in entity.bucket_values
            if bucket.variant == variant.value
        }
        for key, amount in values.items():
            bucket = existing.pop(key, None)
            if bucket is None:
                entity.bucket_values.append(ForecastBucketValue(
                    variant=variant.value,
                    bucket_key=key,
                    amount_cents=to_cents(amount),
                ))
            else:
                bucket.amount_cents = to_cents(amount)
        for stale in existing.values():
            entity.bucket_values.remove(stale)
