"""
Edit Session - Single-active-editor state machine for forecast rows.

States:
    IDLE
    EDITING(path, snapshot)

Transitions:
    begin_edit   IDLE/EDITING -> EDITING  (an active edit is discarded unsaved)
    set_field    EDITING -> EDITING       (mutates the draft, refreshes guidance)
    confirm      EDITING -> IDLE          (validate, persist, rebuild, re-total)
    cancel       EDITING -> IDLE          (draft dropped, nothing persisted)

Edits happen on a draft copy held by the session. The tree only changes
at confirm, when the cost code's rows are rebuilt and swapped in whole,
so readers never observe a half-edited row.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Union

from ..entities import (
    DATE_FIELD_NAMES, DistributionMethod, ForecastRow, ForecastVariant,
    GrandTotalRow, RowPath,
)
from ..exceptions import (
    InvalidDateRangeError,
    MissingRequiredFieldError,
    NoActiveEditError,
    PersistenceFailureError,
    RowNotEditableError,
    ValidationError,
)
from .aggregation_tree import AggregationTree
from .forecast_distributor import to_money
from .forecast_row_builder import ForecastRowBuilder, apply_row
from .grand_totals import compute_grand_totals

logger = logging.getLogger(__name__)

PersistRow = Callable[[ForecastRow], Any]

BUDGET_FIELDS = ('original_budget', 'approved_cos')


class EditState(Enum):
    IDLE = "idle"
    EDITING = "editing"


@dataclass(eq=False)
class EditSession:
    """
    One row edit. Passed explicitly to row rendering logic.

    Attributes:
        path: Row being edited (None once the session is closed)
        snapshot: Row as it was when editing began
        draft: Working copy receiving set_field changes
        guidance: Forecast Guidance preview for the cost code
        discarded_path: Row whose unsaved edit was dropped when this one began
    """

    editor: "ForecastEditor" = field(repr=False)
    path: Optional[RowPath] = None
    snapshot: Optional[ForecastRow] = None
    draft: Optional[ForecastRow] = None
    guidance: Optional[ForecastRow] = None
    discarded_path: Optional[RowPath] = None

    @property
    def state(self) -> EditState:
        return EditState.EDITING if self.path is not None else EditState.IDLE

    @property
    def is_editing(self) -> bool:
        return self.state == EditState.EDITING

    @property
    def tree(self) -> AggregationTree:
        return self.editor.tree

    def is_editing_row(self, path: RowPath) -> bool:
        return self.is_editing and self.path == path

    def _close(self) -> None:
        self.path = None
        self.snapshot = None
        self.draft = None
        self.guidance = None


class ForecastEditor:
    """
    Owns the single active EditSession for an aggregation tree.

    Usage:
        editor = ForecastEditor(tree)
        session = editor.begin_edit(RowPath('03-300', ForecastVariant.CURRENT_FORECAST))
        editor.set_field('current_end_date', date(2025, 6, 30))
        editor.confirm(lambda row: repository.update_forecast_row(row, 'gc-gr', 'PRJ-001'))
    """

    def __init__(self, tree: AggregationTree, builder: Optional[ForecastRowBuilder] = None):
        self.tree = tree
        self.builder = builder or ForecastRowBuilder()
        self.session: Optional[EditSession] = None
        self.grand_totals: List[GrandTotalRow] = compute_grand_totals(tree)

    @classmethod
    def attached(cls, tree: AggregationTree) -> "ForecastEditor":
        """The editor guarding a tree, created on first use."""
        if tree.editor is None:
            tree.editor = cls(tree)
        return tree.editor

    # =========================================================================
    # Transitions
    # =========================================================================

    def begin_edit(self, path: Union[RowPath, Sequence[str]]) -> EditSession:
        """
        Start editing a row, snapshotting its fields.

        An edit already in progress is dropped without saving; the new
        session's `discarded_path` names it so the UI can warn the user.

        Raises:
            RowNotEditableError: For variance rows
        """
        path = path if isinstance(path, RowPath) else RowPath.from_segments(path)
        row = self.tree.get(path)
        if row.variant == ForecastVariant.VARIANCE:
            raise RowNotEditableError(ForecastVariant.VARIANCE.value)

        discarded = None
        if self.session is not None and self.session.is_editing:
            discarded = self.session.path
            logger.warning(
                f"Discarding unsaved edit on {discarded.segments} to edit {path.segments}"
            )
            self.session._close()

        self.session = EditSession(
            editor=self,
            path=path,
            snapshot=row.copy(),
            draft=row.copy(),
            guidance=self.tree.sibling(path, ForecastVariant.FORECAST_GUIDANCE).copy(),
            discarded_path=discarded,
        )
        logger.debug(f"Editing {path.segments}")
        return self.session

    def set_field(self, field_name: str, value: Any) -> EditSession:
        """
        Change one field on the draft row.

        Fields: original_budget, approved_cos, start_date/end_date (or the
        variant's own date names), method, or a bucket key ('YYYY-MM').
        Method, date and budget changes refresh the guidance preview.

        Raises:
            NoActiveEditError, RowNotEditableError, ValidationError
        """
        session = self._active()
        draft = session.draft
        variant = draft.variant.value

        if field_name == 'method':
            if draft.variant == ForecastVariant.ACTUAL_COST:
                raise RowNotEditableError(variant, field_name)
            draft.method = DistributionMethod.parse(value)
            # Guidance previews the Current Forecast method only
            if draft.variant in (ForecastVariant.CURRENT_FORECAST, ForecastVariant.FORECAST_GUIDANCE):
                self._refresh_guidance(session, method=draft.method)
            return session

        if draft.variant == ForecastVariant.FORECAST_GUIDANCE:
            raise RowNotEditableError(variant, field_name)

        if field_name in BUDGET_FIELDS:
            setattr(draft, field_name, _parse_amount(field_name, value))
            self._refresh_guidance(session)
            return session

        date_attr = _date_attribute(draft.variant, field_name)
        if date_attr is not None:
            setattr(draft, date_attr, _parse_date(field_name, value))
            self._refresh_guidance(session)
            return session

        if field_name in self.tree.bucket_keys:
            amount = _parse_amount(field_name, value)
            draft.values[field_name] = amount if amount is not None else to_money(0)
            if draft.variant != ForecastVariant.ACTUAL_COST:
                draft.method = DistributionMethod.MANUAL
            return session

        raise ValidationError(field_name, f"not an editable field on {variant} rows")

    def confirm(self, persist_row: PersistRow) -> AggregationTree:
        """
        Validate, persist and commit the draft.

        The cost code's rows are rebuilt from the updated record and the
        rebuilt row is handed to `persist_row`. Only after it succeeds is
        the node swapped into the tree and the grand totals recomputed.
        A guidance edit commits its method onto the Current Forecast, which
        is the row persisted.

        Raises:
            InvalidDateRangeError, MissingRequiredFieldError: session stays open
            PersistenceFailureError: session stays open with its snapshot
        """
        session = self._active()
        draft = session.draft
        node = self.tree.node(draft.cost_code)

        if draft.variant == ForecastVariant.FORECAST_GUIDANCE:
            self._validate(self.tree.sibling(session.path, ForecastVariant.CURRENT_FORECAST))
            saved_path = RowPath(draft.cost_code, ForecastVariant.CURRENT_FORECAST)
        else:
            self._validate(draft)
            saved_path = session.path

        record = apply_row(node.record, draft)
        rows = self.builder.build(record, self.tree.buckets)
        saved_row = rows[saved_path.slot]

        try:
            persist_row(saved_row)
        except Exception as e:
            logger.error(f"Persisting {saved_path.segments} failed: {e}")
            raise PersistenceFailureError(draft.cost_code, saved_path.variant.value, str(e)) from e

        self.tree.replace_node(record, rows)
        self.grand_totals = compute_grand_totals(self.tree)
        logger.info(f"Committed {session.path.segments}")
        session._close()
        return self.tree

    def cancel(self) -> AggregationTree:
        """Drop the draft; the tree still holds the snapshot's values."""
        session = self._active()
        logger.debug(f"Cancelled edit on {session.path.segments}")
        session._close()
        return self.tree

    # =========================================================================
    # Helpers
    # =========================================================================

    def _active(self) -> EditSession:
        if self.session is None or not self.session.is_editing:
            raise NoActiveEditError()
        return self.session

    def _refresh_guidance(self, session: EditSession, method: Optional[DistributionMethod] = None) -> None:
        """Recompute the guidance preview from the draft-adjusted Current Forecast."""
        draft = session.draft
        current = self.tree.sibling(session.path, ForecastVariant.CURRENT_FORECAST)
        actual = self.tree.sibling(session.path, ForecastVariant.ACTUAL_COST)

        if draft.variant == ForecastVariant.CURRENT_FORECAST:
            current = draft
        elif draft.variant in (ForecastVariant.ACTUAL_COST, ForecastVariant.ORIGINAL_FORECAST):
            current = current.copy()
            current.original_budget = draft.original_budget
            current.approved_cos = draft.approved_cos
        if draft.variant == ForecastVariant.ACTUAL_COST:
            actual = draft

        if current.start_date and current.end_date and current.start_date > current.end_date:
            logger.debug(f"Guidance preview for '{draft.cost_code}' held while the date range is inverted")
            return

        preview = self.builder.guidance_row(
            current, actual, self.tree.buckets, method or session.guidance.method
        )
        if draft.variant == ForecastVariant.FORECAST_GUIDANCE:
            session.draft = preview
        session.guidance = preview

    @staticmethod
    def _validate(row: ForecastRow) -> None:
        variant = row.variant.value
        start_name, end_name = DATE_FIELD_NAMES[row.variant]
        if row.original_budget is None:
            raise MissingRequiredFieldError('original_budget', row.cost_code, variant)
        if row.start_date is None:
            raise MissingRequiredFieldError(start_name, row.cost_code, variant)
        if row.end_date is None:
            raise MissingRequiredFieldError(end_name, row.cost_code, variant)
        if row.start_date > row.end_date:
            raise InvalidDateRangeError(row.start_date, row.end_date)


def _date_attribute(variant: ForecastVariant, field_name: str) -> Optional[str]:
    """Map 'start_date' or the variant's own date field name to the row attribute."""
    start_name, end_name = DATE_FIELD_NAMES[variant]
    if field_name in ('start_date', start_name):
        return 'start_date'
    if field_name in ('end_date', end_name):
        return 'end_date'
    return None


def _parse_amount(field_name: str, value) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    try:
        amount = to_money(value)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(field_name, f"'{value}' is not a valid amount")
    if not amount.is_finite():
        raise ValidationError(field_name, f"'{value}' is not a valid amount")
    return amount


def _parse_date(field_name: str, value) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(field_name, f"'{value}' is not an ISO date")
