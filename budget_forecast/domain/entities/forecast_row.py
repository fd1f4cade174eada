"""
Forecast Row Entities - Derived rows of the forecasting comparison view.

Each cost code expands into a fixed set of six rows:

    03-300
    ├── Actual Cost
    ├── Forecast Guidance
    ├── Original Forecast
    │   └── Variance to Actual
    └── Current Forecast
        └── Variance to Actual
"""
import copy
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Sequence

from .cost_code_record import DistributionMethod
from ..exceptions import RowNotFoundError


VARIANCE_LABEL = "Variance to Actual"


class ForecastVariant(Enum):
    """Closed set of forecast row categories."""
    ACTUAL_COST = "Actual Cost"
    FORECAST_GUIDANCE = "Forecast Guidance"
    ORIGINAL_FORECAST = "Original Forecast"
    CURRENT_FORECAST = "Current Forecast"
    VARIANCE = "Variance"

    @classmethod
    def parse(cls, value) -> "ForecastVariant":
        """Accept enum values ('Current Forecast') or names ('current_forecast')."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for variant in cls:
            if text == variant.value or text.upper().replace('-', '_').replace(' ', '_') == variant.name:
                return variant
        raise ValueError(f"Unknown forecast variant '{value}'")


# Variants that own a budget, a date range and editable bucket values
FORECASTABLE_VARIANTS = (
    ForecastVariant.ACTUAL_COST,
    ForecastVariant.ORIGINAL_FORECAST,
    ForecastVariant.CURRENT_FORECAST,
)

# Storage field names for each variant's date pair, so edits to one
# variant's dates never land on another's
DATE_FIELD_NAMES = {
    ForecastVariant.ACTUAL_COST: ('start_date', 'end_date'),
    ForecastVariant.ORIGINAL_FORECAST: ('original_start_date', 'original_end_date'),
    ForecastVariant.CURRENT_FORECAST: ('current_start_date', 'current_end_date'),
}


class RowSlot(Enum):
    """Fixed position of a row inside its cost code node."""
    ACTUAL = (ForecastVariant.ACTUAL_COST, False)
    GUIDANCE = (ForecastVariant.FORECAST_GUIDANCE, False)
    ORIGINAL = (ForecastVariant.ORIGINAL_FORECAST, False)
    ORIGINAL_VARIANCE = (ForecastVariant.ORIGINAL_FORECAST, True)
    CURRENT = (ForecastVariant.CURRENT_FORECAST, False)
    CURRENT_VARIANCE = (ForecastVariant.CURRENT_FORECAST, True)

    @property
    def variant(self) -> ForecastVariant:
        """Variant tag of the row stored in this slot."""
        parent, is_variance = self.value
        return ForecastVariant.VARIANCE if is_variance else parent


class RowPath(NamedTuple):
    """
    Typed address of a row in the aggregation tree.

    `variant` is the parent variant for variance rows, so
    RowPath('03-300', CURRENT_FORECAST, variance=True) is the
    'Variance to Actual' row nested under Current Forecast.
    """
    cost_code: str
    variant: ForecastVariant
    variance: bool = False

    @property
    def slot(self) -> RowSlot:
        for slot in RowSlot:
            if slot.value == (self.variant, self.variance):
                return slot
        raise RowNotFoundError(self.segments)

    @property
    def segments(self) -> List[str]:
        segments = [self.cost_code, self.variant.value]
        if self.variance:
            segments.append(VARIANCE_LABEL)
        return segments

    @classmethod
    def from_segments(cls, segments: Sequence[str]) -> "RowPath":
        """Parse a rendered path ([costCode, variant, 'Variance to Actual'])."""
        if len(segments) not in (2, 3):
            raise RowNotFoundError(segments)
        if len(segments) == 3 and segments[2] != VARIANCE_LABEL:
            raise RowNotFoundError(segments)
        try:
            variant = ForecastVariant.parse(segments[1])
        except ValueError:
            raise RowNotFoundError(segments)
        path = cls(segments[0], variant, len(segments) == 3)
        path.slot  # validates the combination
        return path

    @classmethod
    def for_slot(cls, cost_code: str, slot: RowSlot) -> "RowPath":
        parent, is_variance = slot.value
        return cls(cost_code, parent, is_variance)


@dataclass
class ForecastRow:
    """
    One row of the forecasting view.

    Attributes:
        cost_code: Owning cost code
        variant: Row category
        compares_to: For variance rows, the forecast variant subtracted from actuals
        description: Display description
        original_budget: Budget (None on guidance and variance rows)
        approved_cos: Approved change orders (None on guidance and variance rows)
        start_date / end_date: Variant's date range (None on variance rows)
        method: Distribution method (current forecast and guidance rows)
        values: Month key -> amount
    """

    cost_code: str
    variant: ForecastVariant
    compares_to: Optional[ForecastVariant] = None
    description: str = ""
    original_budget: Optional[Decimal] = None
    approved_cos: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    method: Optional[DistributionMethod] = None
    values: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def path(self) -> RowPath:
        if self.variant == ForecastVariant.VARIANCE:
            return RowPath(self.cost_code, self.compares_to, True)
        return RowPath(self.cost_code, self.variant)

    @property
    def is_forecastable(self) -> bool:
        return self.variant in FORECASTABLE_VARIANTS

    def copy(self) -> "ForecastRow":
        """Deep copy used for edit snapshots and drafts."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        """
        Serialize for the storage collaborator and API.

        Date fields use the variant-specific names from DATE_FIELD_NAMES.
        """
        data = {
            'cost_code': self.cost_code,
            'forecast': self.variant.value,
            'path': self.path.segments,
            'description': self.description,
            'original_budget': float(self.original_budget) if self.original_budget is not None else None,
            'approved_cos': float(self.approved_cos) if self.approved_cos is not None else None,
            'method': self.method.value if self.method else None,
            'values': {key: float(amount) for key, amount in self.values.items()},
        }
        if self.compares_to is not None:
            data['compares_to'] = self.compares_to.value
        start_name, end_name = DATE_FIELD_NAMES.get(self.variant, ('start_date', 'end_date'))
        data[start_name] = self.start_date.isoformat() if self.start_date else None
        data[end_name] = self.end_date.isoformat() if self.end_date else None
        return data


@dataclass
class GrandTotalRow:
    """
    Pinned summary row for one forecastable variant.

    Recomputed from leaf rows on every change; never persisted.
    """

    label: str
    variant: ForecastVariant
    original_budget: Decimal = Decimal("0.00")
    approved_cos: Decimal = Decimal("0.00")
    values: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def revised_budget(self) -> Decimal:
        return self.original_budget + self.approved_cos

    @property
    def total(self) -> Decimal:
        return sum(self.values.values(), Decimal("0.00"))

    @property
    def forecast_to_complete(self) -> Decimal:
        return self.revised_budget - self.total

    def to_dict(self) -> dict:
        return {
            'label': self.label,
            'forecast': self.variant.value,
            'path': ['Grand Totals', self.label],
            'original_budget': float(self.original_budget),
            'approved_cos': float(self.approved_cos),
            'revised_budget': float(self.revised_budget),
            'values': {key: float(amount) for key, amount in self.values.items()},
            'total': float(self.total),
            'forecast_to_complete': float(self.forecast_to_complete),
        }
