#!/usr/bin/env python3
"""
CLI for the Budget Forecast app.

Usage:
    python cli.py init-db
    python cli.py seed --file data/sample_forecast.yaml
    python cli.py show PRJ-001 gc-gr --cost-code 03-300
    python cli.py totals PRJ-001 gc-gr
    python cli.py edit PRJ-001 gc-gr 03-300 current-forecast --set current_end_date=2025-06-30
    python cli.py serve --port 8000

Commands:
    init-db   Create the forecast tables
    seed      Load cost code records from a YAML file
    show      Print a forecasting view
    totals    Print a view's grand totals
    edit      Edit one forecast row and save it
    serve     Start the API server
    version   Display version information
"""
import click
import logging

from budget_forecast import __version__
from budget_forecast.config import get_config
from budget_forecast.cli import register_commands

# Configure logging
config = get_config()
logging.basicConfig(
    level=getattr(logging, config.log_level, logging.INFO),
    format=config.log_format
)
logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__)
def cli():
    """Budget Forecast CLI.

    Spread construction budget lines across monthly buckets and compare
    actual costs against the original and current forecasts.
    """
    pass


register_commands(cli)


@cli.command()
@click.option('--port', type=int, default=8000, help='Server port')
@click.option('--host', default='0.0.0.0', help='Server host')
@click.option('--reload', is_flag=True, help='Enable auto-reload')
def serve(port: int, host: str, reload: bool):
    """Start the API server.

    Runs the FastAPI application with uvicorn.

    Example:
        python cli.py serve --port 8000 --reload
    """
    import uvicorn

    click.echo(click.style('Budget Forecast - API Server', fg='cyan', bold=True))
    click.echo(f"Starting server at http://{host}:{port}")
    click.echo("Press CTRL+C to stop\n")

    uvicorn.run(
        "budget_forecast.main:app",
        host=host,
        port=port,
        reload=reload
    )


@cli.command()
def version():
    """Display version information."""
    import numpy as np
    import pandas as pd

    click.echo(click.style('Budget Forecast', fg='cyan', bold=True))
    click.echo(f"Version: {__version__}")
    click.echo(f"Config: {config.version} ({config.environment}, "
               f"strict invariants {'on' if config.strict_invariants else 'off'})")
    click.echo("")
    click.echo("Components:")
    click.echo("  - Time buckets, forecast distributor, row builder")
    click.echo("  - Aggregation tree and grand totals")
    click.echo("  - Edit sessions with snapshot/cancel")
    click.echo("")
    click.echo("Dependencies:")
    click.echo(f"  - NumPy: {np.__version__}")
    click.echo(f"  - Pandas: {pd.__version__}")


if __name__ == '__main__':
    cli()
