"""
CLI Module - Command-line interface for Budget Forecast.

Provides management commands for:
- Database setup and seeding
- Viewing forecasts and grand totals
- Editing forecast rows
"""

from .forecast_commands import register_commands

__all__ = ['register_commands']
