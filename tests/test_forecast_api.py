"""
Tests for the forecast REST endpoints.

Runs the FastAPI app against an in-memory SQLite database shared across
connections.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from budget_forecast.main import app
from budget_forecast.models import Base, get_db
from budget_forecast.infrastructure.repositories import ForecastRepository

BASE = "/api/v1/forecasts/PRJ-001/gc-gr"

CONCRETE = {
    "cost_code": "03-300",
    "description": "Cast-in-Place Concrete",
    "original_budget": 120000,
    "actual_start": "2025-01-01",
    "actual_end": "2025-01-31",
    "original_start": "2025-01-01",
    "original_end": "2025-03-31",
    "current_start": "2025-01-01",
    "current_end": "2025-03-31",
    "actual_costs": {"2025-01": 25000},
    "current_forecast": {"2025-01": 40000, "2025-02": 40000, "2025-03": 40000},
}


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def seeded(client):
    response = client.post(f"{BASE}/records", json=CONCRETE)
    assert response.status_code == 201
    return client


# =============================================================================
# Records
# =============================================================================

class TestRecordEndpoint:

    def test_create_record(self, client):
        response = client.post(f"{BASE}/records", json=CONCRETE)
        assert response.status_code == 201
        data = response.json()
        assert data["cost_code"] == "03-300"
        assert data["revised_budget"] == 120000.0
        assert data["current_method"] == "even"

    def test_bad_method_rejected(self, client):
        response = client.post(f"{BASE}/records", json={**CONCRETE, "current_method": "zigzag"})
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    def test_missing_cost_code(self, client):
        response = client.post(f"{BASE}/records", json={"description": "no code"})
        assert response.status_code == 422


# =============================================================================
# Forecast View
# =============================================================================

class TestForecastView:

    def test_view(self, seeded):
        response = seeded.get(BASE)
        assert response.status_code == 200
        data = response.json()

        assert [b["key"] for b in data["buckets"]] == ["2025-01", "2025-02", "2025-03"]
        assert data["buckets"][0]["label"] == "Jan 2025"
        assert len(data["rows"]) == 6
        current = next(r for r in data["rows"] if r["path"] == ["03-300", "Current Forecast"])
        assert current["values"] == {"2025-01": 40000.0, "2025-02": 47500.0, "2025-03": 47500.0}
        assert current["balance_to_finish"] == -15000.0

    def test_variance_rows(self, seeded):
        rows = seeded.get(BASE).json()["rows"]
        variance = next(
            r for r in rows if r["path"] == ["03-300", "Current Forecast", "Variance to Actual"]
        )
        assert variance["forecast"] == "Variance"
        assert variance["compares_to"] == "Current Forecast"
        assert variance["balance_to_finish"] is None

    def test_empty_view(self, client):
        data = client.get(BASE).json()
        assert data["rows"] == []
        assert data["buckets"] == []
        assert [t["total"] for t in data["grand_totals"]] == [0.0, 0.0, 0.0]

    def test_unknown_tab(self, client):
        assert client.get("/api/v1/forecasts/PRJ-001/payroll").status_code == 404

    def test_grand_totals(self, seeded):
        response = seeded.get(f"{BASE}/grand-totals")
        assert response.status_code == 200
        labels = [t["label"] for t in response.json()]
        assert labels == ["Actual Cost Total", "Original Forecast Total", "Current Forecast Total"]
        assert response.json()[0]["total"] == 25000.0


# =============================================================================
# Row Edits
# =============================================================================

class TestRowEdits:

    def test_change_method(self, seeded):
        response = seeded.patch(f"{BASE}/rows/03-300/current_forecast", json={"method": "back_loaded"})
        assert response.status_code == 200
        data = response.json()
        assert data["row"]["method"] == "back_loaded"
        assert data["guidance"]["method"] == "back_loaded"
        assert data["row"]["values"]["2025-03"] > data["row"]["values"]["2025-02"]

        stored = seeded.get(BASE).json()["rows"]
        current = next(r for r in stored if r["path"] == ["03-300", "Current Forecast"])
        assert current["method"] == "back_loaded"

    def test_shorten_current_range(self, seeded):
        response = seeded.patch(
            f"{BASE}/rows/03-300/current_forecast", json={"end_date": "2025-02-28"}
        )
        assert response.status_code == 200
        values = response.json()["row"]["values"]
        assert values == {"2025-01": 40000.0, "2025-02": 95000.0, "2025-03": 0.0}
        current_total = response.json()["grand_totals"][2]
        assert current_total["total"] == 135000.0

    def test_bucket_values_switch_to_manual(self, seeded):
        response = seeded.patch(
            f"{BASE}/rows/03-300/current_forecast", json={"values": {"2025-03": 1000}}
        )
        assert response.status_code == 200
        row = response.json()["row"]
        assert row["method"] == "manual"
        assert row["values"]["2025-03"] == 1000.0

    def test_inverted_dates(self, seeded):
        response = seeded.patch(
            f"{BASE}/rows/03-300/original_forecast",
            json={"start_date": "2025-03-31", "end_date": "2025-01-01"},
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "INVALID_DATE_RANGE"

    def test_guidance_budget_not_editable(self, seeded):
        response = seeded.patch(
            f"{BASE}/rows/03-300/forecast_guidance", json={"original_budget": 1}
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "ROW_NOT_EDITABLE"

    def test_unknown_cost_code(self, seeded):
        response = seeded.patch(f"{BASE}/rows/99-999/current_forecast", json={"method": "bell"})
        assert response.status_code == 404

    def test_unknown_variant(self, seeded):
        response = seeded.patch(f"{BASE}/rows/03-300/budget", json={"method": "bell"})
        assert response.status_code == 404

    def test_storage_failure(self, seeded, monkeypatch):
        def broken(self, row, tab, project_id):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(ForecastRepository, "update_forecast_row", broken)
        response = seeded.patch(f"{BASE}/rows/03-300/current_forecast", json={"method": "bell"})
        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "PERSISTENCE_FAILURE"

        monkeypatch.undo()
        current = next(
            r for r in seeded.get(BASE).json()["rows"] if r["path"] == ["03-300", "Current Forecast"]
        )
        assert current["method"] == "even"


class TestHealth:

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["strict_invariants"] is True
