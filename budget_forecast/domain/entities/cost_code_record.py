"""
Cost Code Record Entity - Raw budget line as fetched from storage.

Purpose: Carry one cost code's budget, change orders, per-variant date
ranges, distribution method and recorded monthly values into the
forecast row builder.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, Optional, Tuple

from ...config import get_config
from ..exceptions import ValidationError


class DistributionMethod(Enum):
    """How a total is spread across the monthly buckets of a date range."""
    EVEN = "even"                  # Equal share per month
    FRONT_LOADED = "front_loaded"  # Logistic S-curve centred early
    BACK_LOADED = "back_loaded"    # Logistic S-curve centred late
    BELL = "bell"                  # Normal curve centred mid-range
    MANUAL = "manual"              # Keep user-entered values

    @classmethod
    def parse(cls, value) -> "DistributionMethod":
        """
        Normalize a method tag from storage, UI labels or API payloads.

        Accepts enum members, canonical values ('front_loaded') and the
        display labels used by the forecasting grid ('Front-Loaded S-Curve',
        'Bell Curve', 'Historical', ...).

        Raises:
            ValidationError: If the tag is not a known method
        """
        if isinstance(value, cls):
            return value
        if value is None:
            raise ValidationError("method", "distribution method is required")

        normalized = str(value).strip().lower()
        method = _METHOD_ALIASES.get(normalized)
        if method is None:
            try:
                method = cls(normalized.replace('-', '_').replace(' ', '_'))
            except ValueError:
                raise ValidationError("method", f"unknown distribution method '{value}'")
        return method


_METHOD_ALIASES = {
    'linear': DistributionMethod.EVEN,
    'historical': DistributionMethod.EVEN,
    'frontloaded': DistributionMethod.FRONT_LOADED,
    'front-loaded s-curve': DistributionMethod.FRONT_LOADED,
    'backloaded': DistributionMethod.BACK_LOADED,
    'back-loaded s-curve': DistributionMethod.BACK_LOADED,
    'bell curve': DistributionMethod.BELL,
}


@dataclass
class CostCodeRecord:
    """
    One cost code's raw forecasting inputs.

    Attributes:
        cost_code: Unique budget line identifier (e.g. '03-300')
        description: Scope description
        original_budget: Budget at award
        approved_cos: Sum of approved change orders
        actual_start / actual_end: Actual cost date range
        original_start / original_end: Original forecast date range
        current_start / current_end: Current forecast date range
        current_method: Distribution method of the current forecast
        original_method: Distribution method of the original forecast
        actual_costs: Month key -> actual cost incurred
        original_forecast: Month key -> stored original forecast value
        current_forecast: Month key -> stored current forecast value
    """

    cost_code: str
    description: str = ""
    original_budget: Optional[Decimal] = Decimal("0.00")
    approved_cos: Optional[Decimal] = Decimal("0.00")

    actual_start: Optional[date] = None
    actual_end: Optional[date] = None
    original_start: Optional[date] = None
    original_end: Optional[date] = None
    current_start: Optional[date] = None
    current_end: Optional[date] = None

    current_method: DistributionMethod = DistributionMethod.EVEN
    original_method: DistributionMethod = DistributionMethod.EVEN

    actual_costs: Dict[str, Decimal] = field(default_factory=dict)
    original_forecast: Dict[str, Decimal] = field(default_factory=dict)
    current_forecast: Dict[str, Decimal] = field(default_factory=dict)

    def revised_budget(self) -> Decimal:
        """Original budget plus approved change orders."""
        return (self.original_budget or Decimal("0")) + (self.approved_cos or Decimal("0"))

    def date_ranges(self) -> Tuple[Tuple[Optional[date], Optional[date]], ...]:
        """All three variant date ranges (actual, original, current)."""
        return (
            (self.actual_start, self.actual_end),
            (self.original_start, self.original_end),
            (self.current_start, self.current_end),
        )

    @classmethod
    def from_dict(cls, data: dict) -> "CostCodeRecord":
        """
        Build a record from plain values (YAML seed files, JSON payloads).

        Dates may be ISO strings, amounts any number or numeric string.

        Raises:
            ValidationError: On a missing cost code, bad date, amount or method
        """
        if not data.get('cost_code'):
            raise ValidationError("cost_code", "cost code is required")

        def amount(name, value):
            try:
                parsed = Decimal(str(value if value is not None else 0)).quantize(Decimal("0.01"))
            except InvalidOperation:
                raise ValidationError(name, f"'{value}' is not a valid amount")
            if not parsed.is_finite():
                raise ValidationError(name, f"'{value}' is not a valid amount")
            return parsed

        def day(name):
            value = data.get(name)
            if value is None or isinstance(value, date):
                return value
            try:
                return date.fromisoformat(str(value))
            except ValueError:
                raise ValidationError(name, f"'{value}' is not an ISO date")

        def monthly(name):
            return {str(key): amount(name, value) for key, value in (data.get(name) or {}).items()}

        default_method = get_config().default_method

        return cls(
            cost_code=str(data['cost_code']),
            description=data.get('description') or "",
            original_budget=amount('original_budget', data.get('original_budget')),
            approved_cos=amount('approved_cos', data.get('approved_cos')),
            actual_start=day('actual_start'),
            actual_end=day('actual_end'),
            original_start=day('original_start'),
            original_end=day('original_end'),
            current_start=day('current_start'),
            current_end=day('current_end'),
            current_method=DistributionMethod.parse(data.get('current_method') or default_method),
            original_method=DistributionMethod.parse(data.get('original_method') or default_method),
            actual_costs=monthly('actual_costs'),
            original_forecast=monthly('original_forecast'),
            current_forecast=monthly('current_forecast'),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'cost_code': self.cost_code,
            'description': self.description,
            'original_budget': float(self.original_budget or 0),
            'approved_cos': float(self.approved_cos or 0),
            'revised_budget': float(self.revised_budget()),
            'actual_start': self.actual_start.isoformat() if self.actual_start else None,
            'actual_end': self.actual_end.isoformat() if self.actual_end else None,
            'original_start': self.original_start.isoformat() if self.original_start else None,
            'original_end': self.original_end.isoformat() if self.original_end else None,
            'current_start': self.current_start.isoformat() if self.current_start else None,
            'current_end': self.current_end.isoformat() if self.current_end else None,
            'current_method': self.current_method.value,
            'original_method': self.original_method.value,
        }
