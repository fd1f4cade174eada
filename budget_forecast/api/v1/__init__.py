"""
API v1 - REST endpoints for forecasting views.

- Forecast endpoints (view, grand totals, row edits, record upserts)
"""
from fastapi import APIRouter

from .forecasts import router as forecasts_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(forecasts_router, prefix="/forecasts", tags=["Forecasts"])
