"""
Aggregation Tree - Hierarchical forecast view with derived row values.

Structure: an arena of cost code nodes keyed by cost code, each owning
its record and exactly six row slots. Rows are addressed with a typed
RowPath; `segments` gives the rendered path for grid tree data:

    ['03-300']
    ['03-300', 'Actual Cost']
    ['03-300', 'Original Forecast', 'Variance to Actual']

Derived values (revised budget, total, balance to finish) are computed
from a row's stored fields on every call and never cached.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from ...config import get_config
from ..entities import (
    CostCodeRecord, ForecastRow, ForecastVariant, RowPath, RowSlot, TimeBucket,
)
from ..exceptions import (
    CostCodeNotFoundError,
    InconsistentBucketSetError,
    RowNotFoundError,
)

logger = logging.getLogger(__name__)

PathLike = Union[RowPath, Sequence[str]]


@dataclass(frozen=True)
class CostCodeNode:
    """One cost code's record and its six rows. Replaced whole, never patched."""
    record: CostCodeRecord
    rows: Dict[RowSlot, ForecastRow]

    def row(self, slot: RowSlot) -> ForecastRow:
        return self.rows[slot]


class AggregationTree:
    """
    Path-addressed forecast rows for one view (project + tab).

    Invariant: every row's bucket keys equal the tree's bucket sequence.
    In strict mode a mismatch raises InconsistentBucketSetError; otherwise
    it is logged and the row is zero-filled to the bucket set.
    """

    def __init__(self, buckets: Sequence[TimeBucket], strict: Optional[bool] = None):
        self.buckets: List[TimeBucket] = list(buckets)
        self.strict = get_config().strict_invariants if strict is None else strict
        self._nodes: Dict[str, CostCodeNode] = {}
        self.editor = None  # ForecastEditor guarding the tree, see ForecastEditor.attached

    # =========================================================================
    # Structure
    # =========================================================================

    @property
    def bucket_keys(self) -> List[str]:
        return [bucket.key for bucket in self.buckets]

    @property
    def cost_codes(self) -> List[str]:
        return list(self._nodes.keys())

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, cost_code: str) -> bool:
        return cost_code in self._nodes

    def add_node(self, record: CostCodeRecord, rows: Dict[RowSlot, ForecastRow]) -> CostCodeNode:
        """Insert a new cost code node (bucket set verified)."""
        node = CostCodeNode(record=record, rows=self._checked_rows(record.cost_code, rows))
        self._nodes[record.cost_code] = node
        return node

    def replace_node(self, record: CostCodeRecord, rows: Dict[RowSlot, ForecastRow]) -> CostCodeNode:
        """
        Swap an existing cost code's record and rows in one assignment.

        Raises:
            CostCodeNotFoundError: If the cost code is not in the tree
        """
        if record.cost_code not in self._nodes:
            raise CostCodeNotFoundError(record.cost_code)
        node = CostCodeNode(record=record, rows=self._checked_rows(record.cost_code, rows))
        self._nodes[record.cost_code] = node
        return node

    def node(self, cost_code: str) -> CostCodeNode:
        try:
            return self._nodes[cost_code]
        except KeyError:
            raise CostCodeNotFoundError(cost_code)

    # =========================================================================
    # Addressing
    # =========================================================================

    def get(self, path: PathLike) -> ForecastRow:
        """
        Row at a path.

        Args:
            path: RowPath or rendered segments

        Raises:
            RowNotFoundError / CostCodeNotFoundError
        """
        path = self._as_path(path)
        return self.node(path.cost_code).row(path.slot)

    def find(self, segments: Sequence[str]) -> ForecastRow:
        return self.get(RowPath.from_segments(segments))

    def sibling(self, path: PathLike, variant: ForecastVariant) -> ForecastRow:
        """Row of another variant under the same cost code."""
        path = self._as_path(path)
        return self.get(RowPath(path.cost_code, variant))

    def iter_rows(self) -> Iterator[Tuple[RowPath, ForecastRow]]:
        """All rows in render order (cost code order, then slot order)."""
        for cost_code, node in self._nodes.items():
            for slot in RowSlot:
                yield RowPath.for_slot(cost_code, slot), node.rows[slot]

    def paths(self) -> Iterator[List[str]]:
        """Rendered paths including the cost code group rows."""
        for cost_code, node in self._nodes.items():
            yield [cost_code]
            for slot in RowSlot:
                yield RowPath.for_slot(cost_code, slot).segments

    def leaf_rows(self) -> List[ForecastRow]:
        return [row for _, row in self.iter_rows()]

    # =========================================================================
    # Derived Values
    # =========================================================================

    def revised_budget(self, path: PathLike) -> Optional[Decimal]:
        """Original budget + approved COs; None on guidance and variance rows."""
        row = self.get(path)
        if not row.is_forecastable:
            return None
        return (row.original_budget or Decimal("0")) + (row.approved_cos or Decimal("0"))

    def row_total(self, path: PathLike) -> Decimal:
        """Sum of the row's values across every bucket of the view."""
        row = self.get(path)
        return sum((row.values.get(key, Decimal("0")) for key in self.bucket_keys), Decimal("0.00"))

    def balance_to_finish(self, path: PathLike) -> Optional[Decimal]:
        """
        Revised budget minus row total.

        Guidance rows borrow the revised budget of their Current Forecast
        sibling; variance rows have no balance.
        """
        path = self._as_path(path)
        row = self.get(path)
        if row.variant == ForecastVariant.VARIANCE:
            return None
        if row.variant == ForecastVariant.FORECAST_GUIDANCE:
            revised = self.revised_budget(RowPath(path.cost_code, ForecastVariant.CURRENT_FORECAST))
        else:
            revised = self.revised_budget(path)
        return revised - self.row_total(path)

    def row_summary(self, path: PathLike) -> dict:
        """Serialized row plus its derived values."""
        path = self._as_path(path)
        row = self.get(path)
        revised = self.revised_budget(path)
        balance = self.balance_to_finish(path)
        return {
            **row.to_dict(),
            'revised_budget': float(revised) if revised is not None else None,
            'total': float(self.row_total(path)),
            'balance_to_finish': float(balance) if balance is not None else None,
        }

    # =========================================================================
    # Invariants
    # =========================================================================

    def _checked_rows(self, cost_code: str, rows: Dict[RowSlot, ForecastRow]) -> Dict[RowSlot, ForecastRow]:
        missing_slots = [slot.name for slot in RowSlot if slot not in rows]
        if missing_slots:
            raise RowNotFoundError([cost_code] + missing_slots)
        return {slot: self._checked_row(rows[slot]) for slot in RowSlot}

    def _checked_row(self, row: ForecastRow) -> ForecastRow:
        keys = self.bucket_keys
        expected = set(keys)
        actual = set(row.values.keys())
        if actual == expected:
            return row

        error = InconsistentBucketSetError(
            row.cost_code,
            row.variant.value,
            missing=sorted(expected - actual),
            unexpected=sorted(actual - expected),
        )
        if self.strict:
            raise error
        logger.error(f"{error.message}; zero-filling to the view's buckets")
        fixed = row.copy()
        fixed.values = {key: row.values.get(key, Decimal("0.00")) for key in keys}
        return fixed

    @staticmethod
    def _as_path(path: PathLike) -> RowPath:
        if isinstance(path, RowPath):
            return path
        return RowPath.from_segments(path)
