"""
Main FastAPI Application for Budget Forecasting.
Provides REST endpoints for forecasting views and row edits.
"""
import logging

from fastapi import FastAPI

from budget_forecast import __version__
from budget_forecast.config import get_config
from budget_forecast.models import init_db
from budget_forecast.api.v1 import api_router as v1_router

logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title="Budget Forecast",
    description="Monthly forecasts of construction budget lines: actuals, original and current forecasts",
    version=__version__
)

app.include_router(v1_router)


# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    init_db()
    config = get_config()
    logger.info(f"Budget Forecast started (environment={config.environment}, config={config.version})")


@app.get("/health")
def health():
    config = get_config()
    return {
        "status": "ok",
        "version": __version__,
        "environment": config.environment,
        "strict_invariants": config.strict_invariants,
    }
