"""
Forecast API Endpoints - Forecasting view, grand totals and row edits.

Implements:
- GET /api/v1/forecasts/{project_id}/{tab} - Tree rows with derived values
- GET /api/v1/forecasts/{project_id}/{tab}/grand-totals - Pinned totals
- PATCH /api/v1/forecasts/{project_id}/{tab}/rows/{cost_code}/{variant} - Edit one row
- POST /api/v1/forecasts/{project_id}/{tab}/records - Upsert a cost code record
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from budget_forecast.config import get_config
from budget_forecast.models import get_db
from budget_forecast.infrastructure.repositories import ForecastRepository
from budget_forecast.domain.entities import (
    CostCodeRecord, ForecastVariant, GrandTotalRow, RowPath,
)
from budget_forecast.domain.services import AggregationTree, ForecastService, compute_grand_totals
from budget_forecast.domain.exceptions import (
    DomainError,
    CostCodeNotFoundError,
    RowNotFoundError,
    RowNotEditableError,
    NoActiveEditError,
    ValidationError,
    InvalidDateRangeError,
    MissingRequiredFieldError,
    PersistenceFailureError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Pydantic Models
# =============================================================================

class BucketResponse(BaseModel):
    key: str
    label: str


class ForecastRowResponse(BaseModel):
    """One tree row with its derived values."""
    path: List[str]
    cost_code: str
    forecast: str
    compares_to: Optional[str] = None
    description: str = ""
    method: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    original_budget: Optional[float] = None
    approved_cos: Optional[float] = None
    revised_budget: Optional[float] = None
    total: float
    balance_to_finish: Optional[float] = None
    values: Dict[str, float]


class GrandTotalResponse(BaseModel):
    label: str
    forecast: str
    path: List[str]
    original_budget: float
    approved_cos: float
    revised_budget: float
    values: Dict[str, float]
    total: float
    forecast_to_complete: float


class ForecastViewResponse(BaseModel):
    """Full forecasting view for one project tab."""
    project_id: str
    tab: str
    buckets: List[BucketResponse]
    rows: List[ForecastRowResponse]
    grand_totals: List[GrandTotalResponse]


class RowUpdate(BaseModel):
    """Request model for editing one forecast row. Unset fields are left alone."""
    original_budget: Optional[Decimal] = Field(None, description="Budget at award")
    approved_cos: Optional[Decimal] = Field(None, description="Approved change orders")
    start_date: Optional[date] = Field(None, description="Start of the row's own date range")
    end_date: Optional[date] = Field(None, description="End of the row's own date range")
    method: Optional[str] = Field(None, description="Distribution method (e.g. even, bell)")
    values: Optional[Dict[str, Decimal]] = Field(
        None, description="Month key (YYYY-MM) -> amount; switches the row to manual"
    )


class ForecastEditResponse(BaseModel):
    row: ForecastRowResponse
    guidance: ForecastRowResponse
    grand_totals: List[GrandTotalResponse]


class CostCodeRecordCreate(BaseModel):
    """Request model for creating or replacing a cost code record."""
    cost_code: str = Field(..., min_length=1, max_length=50, description="Cost code")
    description: str = Field("", max_length=500)
    original_budget: Decimal = Field(Decimal("0"), description="Budget at award")
    approved_cos: Decimal = Field(Decimal("0"), description="Approved change orders")
    actual_start: Optional[date] = None
    actual_end: Optional[date] = None
    original_start: Optional[date] = None
    original_end: Optional[date] = None
    current_start: Optional[date] = None
    current_end: Optional[date] = None
    original_method: str = "even"
    current_method: str = "even"
    actual_costs: Dict[str, Decimal] = Field(default_factory=dict)
    original_forecast: Dict[str, Decimal] = Field(default_factory=dict)
    current_forecast: Dict[str, Decimal] = Field(default_factory=dict)


# =============================================================================
# Helpers
# =============================================================================

ERROR_STATUS = (
    ((CostCodeNotFoundError, RowNotFoundError), status.HTTP_404_NOT_FOUND),
    ((RowNotEditableError, NoActiveEditError), status.HTTP_400_BAD_REQUEST),
    ((ValidationError, InvalidDateRangeError, MissingRequiredFieldError), status.HTTP_422_UNPROCESSABLE_ENTITY),
    ((PersistenceFailureError,), status.HTTP_502_BAD_GATEWAY),
)


def _http_error(error: DomainError) -> HTTPException:
    for error_types, status_code in ERROR_STATUS:
        if isinstance(error, error_types):
            break
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": error.message},
    )


def _check_tab(tab: str) -> None:
    if tab not in get_config().tabs:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown forecast tab '{tab}'"
        )


def _row_response(tree: AggregationTree, path: RowPath) -> ForecastRowResponse:
    row = tree.get(path)
    summary = tree.row_summary(path)
    return ForecastRowResponse(
        path=path.segments,
        cost_code=row.cost_code,
        forecast=row.variant.value,
        compares_to=row.compares_to.value if row.compares_to else None,
        description=row.description,
        method=row.method.value if row.method else None,
        start_date=row.start_date,
        end_date=row.end_date,
        original_budget=summary['original_budget'],
        approved_cos=summary['approved_cos'],
        revised_budget=summary['revised_budget'],
        total=summary['total'],
        balance_to_finish=summary['balance_to_finish'],
        values=summary['values'],
    )


def _totals_response(totals: List[GrandTotalRow]) -> List[GrandTotalResponse]:
    return [GrandTotalResponse(**total.to_dict()) for total in totals]


# =============================================================================
# Endpoints
# =============================================================================

@router.get(
    "/{project_id}/{tab}",
    response_model=ForecastViewResponse,
    summary="Get forecasting view",
    description="All rows of the aggregation tree with derived values and grand totals"
)
def get_forecast(project_id: str, tab: str, db: Session = Depends(get_db)):
    """Load the forecasting view for a project tab."""
    _check_tab(tab)
    try:
        tree = ForecastService(db).load(project_id, tab)
    except DomainError as e:
        raise _http_error(e)

    return ForecastViewResponse(
        project_id=project_id,
        tab=tab,
        buckets=[BucketResponse(key=bucket.key, label=bucket.label) for bucket in tree.buckets],
        rows=[_row_response(tree, path) for path, _ in tree.iter_rows()],
        grand_totals=_totals_response(compute_grand_totals(tree)),
    )


@router.get(
    "/{project_id}/{tab}/grand-totals",
    response_model=List[GrandTotalResponse],
    summary="Get grand totals",
    description="Actual, Original Forecast and Current Forecast totals across all cost codes"
)
def get_grand_totals(project_id: str, tab: str, db: Session = Depends(get_db)):
    _check_tab(tab)
    try:
        tree = ForecastService(db).load(project_id, tab)
    except DomainError as e:
        raise _http_error(e)
    return _totals_response(compute_grand_totals(tree))


@router.patch(
    "/{project_id}/{tab}/rows/{cost_code}/{variant}",
    response_model=ForecastEditResponse,
    summary="Edit a forecast row",
    description="Apply field changes to one row, persist it and return the refreshed totals"
)
def edit_row(
    project_id: str,
    tab: str,
    cost_code: str,
    variant: str,
    update: RowUpdate,
    db: Session = Depends(get_db),
):
    """
    Edit one row in a single begin/set/confirm cycle.

    Budget and date changes are applied before bucket values, and the
    method last, so an explicit method wins over the manual switch.
    """
    _check_tab(tab)
    try:
        path = RowPath(cost_code, ForecastVariant.parse(variant))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown forecast variant '{variant}'"
        )

    changes = update.model_dump(exclude_unset=True)
    fields = {}
    for name in ('original_budget', 'approved_cos', 'start_date', 'end_date'):
        if name in changes:
            fields[name] = changes[name]
    for key, amount in (changes.get('values') or {}).items():
        fields[key] = amount
    if changes.get('method') is not None:
        fields['method'] = changes['method']

    try:
        editor = ForecastService(db).edit(project_id, tab, path, fields)
    except DomainError as e:
        logger.warning(f"Edit of {path.segments} in {project_id}/{tab} rejected: {e.message}")
        raise _http_error(e)

    tree = editor.tree
    return ForecastEditResponse(
        row=_row_response(tree, path),
        guidance=_row_response(tree, RowPath(cost_code, ForecastVariant.FORECAST_GUIDANCE)),
        grand_totals=_totals_response(editor.grand_totals),
    )


@router.post(
    "/{project_id}/{tab}/records",
    status_code=status.HTTP_201_CREATED,
    summary="Create or replace a cost code record",
    description="Upsert the raw inputs of one cost code"
)
def upsert_record(
    project_id: str,
    tab: str,
    record_data: CostCodeRecordCreate,
    db: Session = Depends(get_db),
):
    _check_tab(tab)
    repo = ForecastRepository(db)
    try:
        record = CostCodeRecord.from_dict(record_data.model_dump())
        repo.upsert_record(project_id, tab, record)
        repo.commit()
    except DomainError as e:
        repo.rollback()
        raise _http_error(e)

    return record.to_dict()
