"""
Tests for the forecast CLI commands.
"""
import pytest
from click.testing import CliRunner
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from budget_forecast.cli import forecast_commands
from budget_forecast.models import Base
from cli import cli


@pytest.fixture
def runner(monkeypatch):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    monkeypatch.setattr(forecast_commands, "get_db", get_db)
    monkeypatch.setattr(forecast_commands, "init_db", lambda: None)
    return CliRunner()


@pytest.fixture
def seeded(runner):
    result = runner.invoke(cli, ["seed"])
    assert result.exit_code == 0, result.output
    return runner


class TestSeed:

    def test_seed_sample_file(self, runner):
        result = runner.invoke(cli, ["seed"])
        assert result.exit_code == 0
        assert "03-300" in result.output
        assert "Seeded PRJ-001/gc-gr" in result.output


class TestShow:

    def test_show_cost_code(self, seeded):
        result = seeded.invoke(cli, ["show", "PRJ-001", "gc-gr", "--cost-code", "03-300"])
        assert result.exit_code == 0
        assert "03-300 / Current Forecast" in result.output
        assert "05-120" not in result.output

    def test_show_empty_view(self, runner):
        result = runner.invoke(cli, ["show", "PRJ-404", "gc-gr"])
        assert result.exit_code == 0
        assert "No cost codes" in result.output

    def test_totals(self, seeded):
        result = seeded.invoke(cli, ["totals", "PRJ-001", "gc-gr"])
        assert result.exit_code == 0
        assert "Current Forecast Total" in result.output


class TestEdit:

    def test_edit_row(self, seeded):
        result = seeded.invoke(cli, [
            "edit", "PRJ-001", "gc-gr", "03-300", "current-forecast",
            "--set", "current_end_date=2025-02-28",
        ])
        assert result.exit_code == 0, result.output
        assert "Saved 03-300 / Current Forecast" in result.output

    def test_rejected_edit_aborts(self, seeded):
        result = seeded.invoke(cli, [
            "edit", "PRJ-001", "gc-gr", "03-300", "original-forecast",
            "--set", "start_date=2025-12-01",
        ])
        assert result.exit_code != 0
        assert "INVALID_DATE_RANGE" in result.output

    def test_bad_assignment(self, seeded):
        result = seeded.invoke(cli, [
            "edit", "PRJ-001", "gc-gr", "03-300", "current-forecast", "--set", "method",
        ])
        assert result.exit_code == 2
