"""
Forecast Service - Entry points for loading and editing a forecast view.

Module-level functions operate on an in-memory AggregationTree and are
free of storage concerns. ForecastService wires them to the forecast
repository for one database session.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from sqlalchemy.orm import Session

from ..entities import CostCodeRecord, ForecastRow, GrandTotalRow, RowPath
from ..exceptions import NoActiveEditError, ValidationError
from .aggregation_tree import AggregationTree
from .edit_session import EditSession, ForecastEditor, PersistRow
from .forecast_row_builder import ForecastRowBuilder
from .grand_totals import compute_grand_totals
from .time_buckets import generate_time_buckets
from ...infrastructure.repositories import ForecastRepository

logger = logging.getLogger(__name__)


# =============================================================================
# Core Operations
# =============================================================================

def load_forecast(
    records: Iterable[CostCodeRecord],
    builder: Optional[ForecastRowBuilder] = None,
    strict: Optional[bool] = None,
) -> AggregationTree:
    """
    Build the aggregation tree for a set of cost code records.

    Args:
        records: Every record in the view
        builder: Row builder (a default one is created if omitted)
        strict: Override for strict invariant checking

    Raises:
        ValidationError: If a cost code appears twice
    """
    records = list(records)
    builder = builder or ForecastRowBuilder()
    buckets = generate_time_buckets(records)
    tree = AggregationTree(buckets, strict=strict)

    for record in records:
        if record.cost_code in tree:
            raise ValidationError("cost_code", f"duplicate cost code '{record.cost_code}'")
        tree.add_node(record, builder.build(record, buckets))

    span = f"{buckets[0].key}..{buckets[-1].key}" if buckets else "no buckets"
    logger.info(f"Loaded forecast: {len(tree)} cost codes, {len(buckets)} months ({span})")
    return tree


def begin_edit(tree: AggregationTree, path: Union[RowPath, Sequence[str]]) -> EditSession:
    """Start editing a row; any other edit on the tree is discarded."""
    return ForecastEditor.attached(tree).begin_edit(path)


def set_field(session: EditSession, field_name: str, value: Any) -> EditSession:
    return _editor_of(session).set_field(field_name, value)


def confirm_edit(session: EditSession, persist_row: PersistRow) -> AggregationTree:
    return _editor_of(session).confirm(persist_row)


def cancel_edit(session: EditSession) -> AggregationTree:
    return _editor_of(session).cancel()


def grand_totals(tree: AggregationTree) -> List[GrandTotalRow]:
    return compute_grand_totals(tree)


def _editor_of(session: EditSession) -> ForecastEditor:
    """Resolve the editor, refusing sessions that were closed or superseded."""
    editor = session.editor
    if editor.session is not session:
        raise NoActiveEditError()
    return editor


# =============================================================================
# Storage-backed Service
# =============================================================================

class ForecastService:
    """
    Forecast view operations backed by the forecast repository.

    Usage:
        service = ForecastService(db)
        tree = service.load('PRJ-001', 'gc-gr')
        editor = service.edit('PRJ-001', 'gc-gr', ['03-300', 'Current Forecast'],
                              {'method': 'bell'})
    """

    def __init__(self, session: Session, builder: Optional[ForecastRowBuilder] = None):
        self.session = session
        self.repository = ForecastRepository(session)
        self.builder = builder or ForecastRowBuilder()

    def load(self, project_id: str, tab: str) -> AggregationTree:
        records = self.repository.get_records(project_id, tab)
        return load_forecast(records, builder=self.builder)

    def persister(self, project_id: str, tab: str) -> PersistRow:
        """Persistence callable that writes one row and commits."""

        def persist_row(row: ForecastRow) -> None:
            try:
                self.repository.update_forecast_row(row, tab, project_id)
                self.repository.commit()
            except Exception:
                self.repository.rollback()
                raise

        return persist_row

    def edit(
        self,
        project_id: str,
        tab: str,
        path: Union[RowPath, Sequence[str]],
        fields: Dict[str, Any],
    ) -> ForecastEditor:
        """
        Apply a set of field changes to one row and commit them.

        Returns the editor, holding the updated tree and grand totals.
        The session is left open (and nothing saved) if validation or
        persistence fails.
        """
        tree = self.load(project_id, tab)
        editor = ForecastEditor(tree, builder=self.builder)
        editor.begin_edit(path)
        for field_name, value in fields.items():
            editor.set_field(field_name, value)
        editor.confirm(self.persister(project_id, tab))
        return editor
