"""
Forecast Distributor - Spreads a dollar total across monthly buckets.

Each distribution method is a pure function from the number of in-range
buckets to a weight per bucket. Curve methods integrate a cumulative
curve F over equal slices of the range:

    w_i = F((i + 1) / n) - F(i / n)

Weights are normalized to sum to 1 before being applied, every share is
rounded to the cent, and the rounding remainder lands on the last bucket
so allocations always tie out to the total.

Curves:
    even:         F(u) = u
    front_loaded: logistic S-curve, midpoint early in the range
    back_loaded:  logistic S-curve, midpoint late in the range
    bell:         normal CDF centred on the range
    manual:       no-op, caller-supplied values are kept
"""
import logging
import math
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np

from ...config import ForecastConfig, get_config
from ..entities import DistributionMethod, TimeBucket
from ..exceptions import InvalidDateRangeError, ValidationError
from .time_buckets import month_key, parse_month_key

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def to_money(value, quantum: Decimal = Decimal("0.01")) -> Decimal:
    """Coerce a number to a Decimal rounded to the currency quantum."""
    if value is None or value == '':
        return Decimal("0").quantize(quantum)
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def _logistic(midpoint: float, steepness: float) -> Callable[[float], float]:
    return lambda u: 1.0 / (1.0 + math.exp(-steepness * (u - midpoint)))


def _normal_cdf(mean: float, sigma: float) -> Callable[[float], float]:
    return lambda u: 0.5 * (1.0 + math.erf((u - mean) / (sigma * math.sqrt(2.0))))


class ForecastDistributor:
    """
    Allocates totals to buckets for a closed set of distribution methods.

    Usage:
        distributor = ForecastDistributor()
        allocation = distributor.distribute(
            Decimal("120000"), date(2025, 1, 1), date(2025, 3, 31),
            DistributionMethod.EVEN, buckets,
        )
    """

    def __init__(self, config: Optional[ForecastConfig] = None):
        config = config or get_config()
        self.quantum = config.money_quantum
        self._curves: Dict[DistributionMethod, Callable[[float], float]] = {
            DistributionMethod.EVEN: lambda u: u,
            DistributionMethod.FRONT_LOADED: _logistic(
                **config.get_curve_params(DistributionMethod.FRONT_LOADED.value)
            ),
            DistributionMethod.BACK_LOADED: _logistic(
                **config.get_curve_params(DistributionMethod.BACK_LOADED.value)
            ),
            DistributionMethod.BELL: _normal_cdf(
                **config.get_curve_params(DistributionMethod.BELL.value)
            ),
        }

    # =========================================================================
    # Weights
    # =========================================================================

    def weights(self, method: DistributionMethod, count: int) -> np.ndarray:
        """
        Normalized weights for `count` consecutive buckets.

        Args:
            method: Any method except MANUAL
            count: Number of buckets sharing the amount

        Returns:
            Array of `count` weights summing to 1
        """
        if count <= 0:
            return np.zeros(0)
        curve = self._curves.get(method)
        if curve is None:
            raise ValidationError("method", f"'{method.value}' has no weighting curve")

        edges = np.array([curve(i / count) for i in range(count + 1)])
        raw = np.diff(edges)
        total = raw.sum()
        if total <= 0:
            return np.full(count, 1.0 / count)
        return raw / total

    # =========================================================================
    # Distribution
    # =========================================================================

    def distribute(
        self,
        amount,
        start: Optional[date],
        end: Optional[date],
        method,
        buckets: Sequence[TimeBucket],
        actual_costs: Optional[Mapping[str, Decimal]] = None,
        existing: Optional[Mapping[str, Decimal]] = None,
    ) -> Dict[str, Decimal]:
        """
        Allocate an amount across the buckets of a date range.

        Args:
            amount: Total to distribute
            start: Range start (its month is the first bucket)
            end: Range end (its month is the last bucket)
            method: DistributionMethod or a tag DistributionMethod.parse accepts
            buckets: Ordered view-wide bucket sequence
            actual_costs: Month key -> incurred cost. When given, in-range
                buckets with a recorded actual are left out of the spread and
                only the remaining amount is shared by the open buckets.
            existing: Month key -> prior value. Kept by MANUAL and by buckets
                excluded because of recorded actuals.

        Returns:
            One entry per bucket. Out-of-range buckets are zero; in-range
            shares sum to the (remaining) amount exactly.

        Raises:
            InvalidDateRangeError: start is after end
            ValidationError: unknown method or missing dates
        """
        method = DistributionMethod.parse(method)
        existing = existing or {}
        keys = [bucket.key for bucket in buckets]

        if method == DistributionMethod.MANUAL:
            return {key: to_money(existing.get(key), self.quantum) for key in keys}

        if start is None or end is None:
            raise ValidationError("date_range", "start and end dates are required to distribute")
        if start > end:
            raise InvalidDateRangeError(start, end)

        amount = to_money(amount, self.quantum)
        allocation = {key: to_money(0, self.quantum) for key in keys}
        if not keys:
            return allocation

        start_key, end_key = month_key(start), month_key(end)
        in_range = [key for key in keys if start_key <= key <= end_key]

        excluded = set()
        if actual_costs is not None:
            excluded = {
                key for key in in_range
                if to_money(actual_costs.get(key), self.quantum) != 0
            }
            incurred = sum(
                (to_money(actual_costs.get(key), self.quantum) for key in excluded), ZERO
            )
            for key in excluded:
                allocation[key] = to_money(existing.get(key), self.quantum)
            if amount >= 0:
                amount = max(ZERO, amount - incurred)
            else:
                amount = amount - incurred

        open_keys = [key for key in in_range if key not in excluded]
        if not open_keys:
            target = self._nearest_open_bucket(keys, excluded, start_key, end_key)
            logger.debug(
                f"No open bucket in {start_key}..{end_key}; assigning {amount} to {target}"
            )
            allocation[target] += amount
            return allocation

        shares = self._split(amount, self.weights(method, len(open_keys)))
        for key, share in zip(open_keys, shares):
            allocation[key] = share
        return allocation

    def _split(self, amount: Decimal, weights: np.ndarray) -> List[Decimal]:
        """Apply weights, round each share, push the remainder to the last share."""
        shares = [
            (amount * Decimal(repr(float(weight)))).quantize(self.quantum, rounding=ROUND_HALF_UP)
            for weight in weights
        ]
        shares[-1] += amount - sum(shares, ZERO)
        return shares

    @staticmethod
    def _nearest_open_bucket(
        keys: List[str],
        excluded: set,
        start_key: str,
        end_key: str,
    ) -> str:
        """
        Pick the bucket closest to a range, by month distance.

        Buckets already holding actuals are skipped when any other bucket
        exists. Ties go to the later bucket.
        """
        candidates = [key for key in keys if key not in excluded] or keys

        def months(key: str) -> int:
            year, month = parse_month_key(key)
            return year * 12 + month

        low, high = months(start_key), months(end_key)

        def distance(key: str) -> int:
            value = months(key)
            if value < low:
                return low - value
            if value > high:
                return value - high
            return 0

        return min(candidates, key=lambda key: (distance(key), -months(key)))
