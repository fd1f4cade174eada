"""
Repository implementations for data access layer.
"""
from .base_repository import BaseRepository
from .forecast_repository import ForecastRepository, to_cents, from_cents

__all__ = [
    'BaseRepository',
    'ForecastRepository',
    'to_cents',
    'from_cents',
]
