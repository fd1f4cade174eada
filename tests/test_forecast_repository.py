"""
Tests for forecast storage: the repository and the storage-backed service.

Uses an in-memory SQLite database per test.
"""
import pytest
from datetime import date
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from budget_forecast.models import Base, ForecastBucketValue, ForecastCostCode
from budget_forecast.domain.entities import (
    CostCodeRecord, DistributionMethod, ForecastRow, ForecastVariant,
)
from budget_forecast.domain.exceptions import (
    CostCodeNotFoundError, PersistenceFailureError, RowNotEditableError,
)
from budget_forecast.domain.services import ForecastService
from budget_forecast.infrastructure.repositories import ForecastRepository, from_cents, to_cents

JAN, FEB, MAR = "2025-01", "2025-02", "2025-03"
PROJECT, TAB = "PRJ-001", "gc-gr"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def db():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def repository(db):
    return ForecastRepository(db)


@pytest.fixture
def record():
    return CostCodeRecord(
        cost_code="03-300",
        description="Cast-in-Place Concrete",
        original_budget=Decimal("120000.00"),
        approved_cos=Decimal("2500.50"),
        actual_start=date(2025, 1, 1),
        actual_end=date(2025, 1, 31),
        original_start=date(2025, 1, 1),
        original_end=date(2025, 3, 31),
        current_start=date(2025, 1, 1),
        current_end=date(2025, 3, 31),
        current_method=DistributionMethod.BELL,
        actual_costs={JAN: Decimal("25000.00")},
        current_forecast={JAN: Decimal("40000.00"), FEB: Decimal("40000.00"), MAR: Decimal("40000.00")},
    )


@pytest.fixture
def stored(repository, record):
    repository.upsert_record(PROJECT, TAB, record)
    repository.commit()
    return record


# =============================================================================
# Money Conversion
# =============================================================================

class TestCents:

    def test_to_cents(self):
        assert to_cents(Decimal("1234.56")) == 123456
        assert to_cents("0.005") == 1
        assert to_cents(None) == 0
        assert to_cents(Decimal("-800")) == -80000

    def test_from_cents(self):
        assert from_cents(123456) == Decimal("1234.56")
        assert from_cents(None) == Decimal("0.00")


# =============================================================================
# Records
# =============================================================================

class TestRecords:

    def test_upsert_and_fetch(self, repository, stored):
        records = repository.get_records(PROJECT, TAB)
        assert len(records) == 1
        fetched = records[0]
        assert fetched.cost_code == "03-300"
        assert fetched.approved_cos == Decimal("2500.50")
        assert fetched.current_method == DistributionMethod.BELL
        assert fetched.original_method == DistributionMethod.EVEN
        assert fetched.actual_costs == {JAN: Decimal("25000.00")}
        assert fetched.current_forecast[FEB] == Decimal("40000.00")
        assert fetched.current_end == date(2025, 3, 31)

    def test_upsert_overwrites_and_drops_stale_months(self, repository, stored, db):
        stored.current_forecast = {JAN: Decimal("10.00")}
        repository.upsert_record(PROJECT, TAB, stored)
        repository.commit()

        fetched = repository.get_records(PROJECT, TAB)[0]
        assert fetched.current_forecast == {JAN: Decimal("10.00")}
        assert db.query(ForecastCostCode).count() == 1
        assert db.query(ForecastBucketValue).filter(
            ForecastBucketValue.variant == ForecastVariant.CURRENT_FORECAST.value
        ).count() == 1

    def test_views_are_scoped(self, repository, stored):
        assert repository.get_records(PROJECT, "owner-billing") == []
        assert repository.get_records("PRJ-002", TAB) == []
        assert repository.exists(project_id=PROJECT, tab=TAB, cost_code="03-300")

    def test_ordered_by_cost_code(self, repository):
        for code in ("09-250", "01-100", "05-120"):
            repository.upsert_record(PROJECT, TAB, CostCodeRecord(cost_code=code))
        repository.commit()
        assert [r.cost_code for r in repository.get_records(PROJECT, TAB)] == ["01-100", "05-120", "09-250"]

    def test_null_method_uses_default(self, repository, stored, db):
        row = db.query(ForecastCostCode).first()
        row.current_method = None
        db.commit()
        assert repository.get_records(PROJECT, TAB)[0].current_method == DistributionMethod.EVEN


# =============================================================================
# Row Updates
# =============================================================================

class TestUpdateForecastRow:

    def _current_row(self, **overrides):
        fields = dict(
            cost_code="03-300",
            variant=ForecastVariant.CURRENT_FORECAST,
            original_budget=Decimal("130000.00"),
            approved_cos=Decimal("0.00"),
            start_date=date(2025, 1, 1),
            end_date=date(2025, 2, 28),
            method=DistributionMethod.MANUAL,
            values={JAN: Decimal("40000.00"), FEB: Decimal("90000.00"), MAR: Decimal("0.00")},
        )
        fields.update(overrides)
        return ForecastRow(**fields)

    def test_writes_variant_fields(self, repository, stored):
        repository.update_forecast_row(self._current_row(), TAB, PROJECT)
        repository.commit()

        fetched = repository.get_records(PROJECT, TAB)[0]
        assert fetched.original_budget == Decimal("130000.00")
        assert fetched.current_end == date(2025, 2, 28)
        assert fetched.current_method == DistributionMethod.MANUAL
        assert fetched.current_forecast[FEB] == Decimal("90000.00")
        assert fetched.original_end == date(2025, 3, 31)
        assert fetched.actual_end == date(2025, 1, 31)

    def test_idempotent(self, repository, stored, db):
        row = self._current_row()
        repository.update_forecast_row(row, TAB, PROJECT)
        repository.commit()
        first = repository.get_records(PROJECT, TAB)[0]
        count = db.query(ForecastBucketValue).count()

        repository.update_forecast_row(row, TAB, PROJECT)
        repository.commit()
        assert repository.get_records(PROJECT, TAB)[0] == first
        assert db.query(ForecastBucketValue).count() == count

    def test_actual_row_keeps_methods(self, repository, stored):
        row = ForecastRow(
            cost_code="03-300",
            variant=ForecastVariant.ACTUAL_COST,
            original_budget=Decimal("120000.00"),
            approved_cos=Decimal("2500.50"),
            start_date=date(2025, 1, 1),
            end_date=date(2025, 2, 28),
            values={JAN: Decimal("25000.00"), FEB: Decimal("1000.00")},
        )
        repository.update_forecast_row(row, TAB, PROJECT)
        repository.commit()
        fetched = repository.get_records(PROJECT, TAB)[0]
        assert fetched.actual_costs[FEB] == Decimal("1000.00")
        assert fetched.actual_end == date(2025, 2, 28)
        assert fetched.current_method == DistributionMethod.BELL

    def test_unknown_cost_code(self, repository, stored):
        with pytest.raises(CostCodeNotFoundError):
            repository.update_forecast_row(self._current_row(cost_code="99-999"), TAB, PROJECT)

    def test_derived_rows_rejected(self, repository, stored):
        row = ForecastRow(cost_code="03-300", variant=ForecastVariant.FORECAST_GUIDANCE)
        with pytest.raises(RowNotEditableError):
            repository.update_forecast_row(row, TAB, PROJECT)


# =============================================================================
# Storage-backed Service
# =============================================================================

class TestForecastService:

    def test_load(self, db, stored):
        tree = ForecastService(db).load(PROJECT, TAB)
        assert tree.cost_codes == ["03-300"]
        assert tree.bucket_keys == [JAN, FEB, MAR]

    def test_edit_persists_current_row(self, db, stored):
        service = ForecastService(db)
        editor = service.edit(PROJECT, TAB, ["03-300", "Current Forecast"], {"current_end_date": "2025-02-28"})

        assert editor.session.snapshot is None
        fetched = service.repository.get_records(PROJECT, TAB)[0]
        assert fetched.current_end == date(2025, 2, 28)
        assert fetched.current_forecast[MAR] == Decimal("0.00")
        assert sum(fetched.current_forecast.values()) == editor.grand_totals[2].total

    def test_edit_guidance_saves_current_method(self, db, stored):
        service = ForecastService(db)
        service.edit(PROJECT, TAB, ["03-300", "Forecast Guidance"], {"method": "back_loaded"})
        fetched = service.repository.get_records(PROJECT, TAB)[0]
        assert fetched.current_method == DistributionMethod.BACK_LOADED

    def test_storage_failure_rolls_back(self, db, stored, monkeypatch):
        service = ForecastService(db)

        def broken(row, tab, project_id):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(service.repository, "update_forecast_row", broken)
        with pytest.raises(PersistenceFailureError) as exc_info:
            service.edit(PROJECT, TAB, ["03-300", "Current Forecast"], {"original_budget": "1"})
        assert "database is locked" in exc_info.value.reason

        fetched = ForecastRepository(db).get_records(PROJECT, TAB)[0]
        assert fetched.original_budget == Decimal("120000.00")
