"""
Database models and SQLAlchemy setup for the Budget Forecast app.
All monetary values stored as integer cents to avoid float drift.
"""
from datetime import datetime
from sqlalchemy import (
    create_engine, Column, Integer, String, Date, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship

from budget_forecast.config import get_config

DATABASE_URL = get_config().database_url
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


class ForecastCostCode(Base):
    """
    One budget line of a forecasting view (project + tab).

    Date pairs are stored per variant so an edit to one variant's range
    never lands on another's.
    """
    __tablename__ = "forecast_cost_codes"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(50), nullable=False, index=True)
    tab = Column(String(50), nullable=False, index=True)  # gc-gr, owner-billing
    cost_code = Column(String(50), nullable=False, index=True)
    description = Column(String(500), default="")

    original_budget_cents = Column(Integer, default=0)
    approved_cos_cents = Column(Integer, default=0)

    start_date = Column(Date, nullable=True)  # Actual cost range
    end_date = Column(Date, nullable=True)
    original_start_date = Column(Date, nullable=True)
    original_end_date = Column(Date, nullable=True)
    current_start_date = Column(Date, nullable=True)
    current_end_date = Column(Date, nullable=True)

    original_method = Column(String(30), default="even")
    current_method = Column(String(30), default="even")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bucket_values = relationship(
        "ForecastBucketValue", back_populates="cost_code_row", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint('project_id', 'tab', 'cost_code', name='uq_forecast_cost_code'),
    )


class ForecastBucketValue(Base):
    """Monthly amount of one variant (Actual Cost, Original or Current Forecast)."""
    __tablename__ = "forecast_bucket_values"

    id = Column(Integer, primary_key=True, index=True)
    cost_code_id = Column(Integer, ForeignKey('forecast_cost_codes.id'), nullable=False, index=True)
    variant = Column(String(30), nullable=False)  # Actual Cost, Original Forecast, Current Forecast
    bucket_key = Column(String(7), nullable=False)  # YYYY-MM
    amount_cents = Column(Integer, default=0)

    cost_code_row = relationship("ForecastCostCode", back_populates="bucket_values")

    __table_args__ = (
        UniqueConstraint('cost_code_id', 'variant', 'bucket_key', name='uq_forecast_bucket_value'),
    )


def init_db():
    """Initialize the database and create all tables."""
    Base.metadata.create_all(bind=engine)


def get_db():
    """Database session dependency for FastAPI."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
