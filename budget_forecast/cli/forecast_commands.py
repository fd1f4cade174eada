"""
Forecast CLI Commands - Management commands for forecasting views.

Provides command-line interface for:
- Database setup and seeding
- Printing a view's rows and grand totals
- One-shot row edits
"""
import click
import logging
from pathlib import Path
from typing import Tuple

import pandas as pd
import yaml

from budget_forecast.config import get_config
from budget_forecast.models import get_db, init_db
from budget_forecast.infrastructure.repositories import ForecastRepository
from budget_forecast.domain.entities import CostCodeRecord, ForecastVariant, RowPath
from budget_forecast.domain.services import ForecastService, compute_grand_totals
from budget_forecast.domain.exceptions import DomainError
from budget_forecast.modules.forecast_view import (
    tree_to_dataframe, grand_totals_to_dataframe, format_for_display,
)

logger = logging.getLogger(__name__)

SAMPLE_SEED_PATH = Path(__file__).parent.parent.parent / "data" / "sample_forecast.yaml"


def _fail(message: str):
    click.echo(click.style(message, fg='red'), err=True)
    raise click.Abort()


def _parse_assignments(assignments: Tuple[str, ...]) -> dict:
    """'field=value' pairs -> dict, keeping their order."""
    fields = {}
    for assignment in assignments:
        name, sep, value = assignment.partition('=')
        if not sep or not name.strip():
            raise click.BadParameter(f"expected FIELD=VALUE, got '{assignment}'", param_hint='--set')
        fields[name.strip()] = value.strip()
    return fields


@click.command('init-db')
def init_db_command():
    """Create the forecast tables."""
    init_db()
    click.echo(click.style(f"Database ready: {get_config().database_url}", fg='green'))


@click.command()
@click.option('--file', 'seed_file', default=str(SAMPLE_SEED_PATH), type=click.Path(exists=True),
              help='YAML file with project_id, tab and a list of records')
@click.option('--project', 'project_id', default=None, help='Override the file\'s project_id')
@click.option('--tab', default=None, help='Override the file\'s tab')
def seed(seed_file: str, project_id: str, tab: str):
    """Load cost code records from a YAML seed file."""
    with open(seed_file, 'r') as f:
        data = yaml.safe_load(f) or {}

    project_id = project_id or data.get('project_id')
    tab = tab or data.get('tab') or get_config().tabs[0]
    if not project_id:
        _fail("Seed file has no project_id; pass --project")

    init_db()
    db = next(get_db())
    repo = ForecastRepository(db)
    try:
        for item in data.get('records', []):
            record = CostCodeRecord.from_dict(item)
            repo.upsert_record(project_id, tab, record)
            click.echo(f"  - {record.cost_code}: {record.description or '(no description)'}")
        repo.commit()
    except DomainError as e:
        repo.rollback()
        _fail(f"Seeding failed: {e.message}")
    finally:
        db.close()

    click.echo(click.style(f"Seeded {project_id}/{tab}", fg='green'))


@click.command()
@click.argument('project_id')
@click.argument('tab')
@click.option('--cost-code', default=None, help='Show only one cost code')
@click.option('--raw', is_flag=True, help='Print plain numbers instead of USD strings')
@click.option('--csv', 'csv_path', default=None, type=click.Path(), help='Also write the view to CSV')
def show(project_id: str, tab: str, cost_code: str, raw: bool, csv_path: str):
    """Print the forecasting view of a project tab."""
    db = next(get_db())
    try:
        tree = ForecastService(db).load(project_id, tab)
    except DomainError as e:
        _fail(f"Could not load {project_id}/{tab}: {e.message}")
    finally:
        db.close()

    if not len(tree):
        click.echo(f"No cost codes in {project_id}/{tab}")
        return

    df = tree_to_dataframe(tree)
    if cost_code:
        df = df[df['path'].str.startswith(f"{cost_code} / ")]
    if csv_path:
        df.to_csv(csv_path, index=False)
        click.echo(f"Wrote {len(df)} rows to {csv_path}")

    click.echo(click.style(f"{project_id} / {tab}", fg='cyan', bold=True))
    with pd.option_context('display.max_columns', None, 'display.width', 200):
        click.echo((df if raw else format_for_display(df)).to_string(index=False))


@click.command()
@click.argument('project_id')
@click.argument('tab')
def totals(project_id: str, tab: str):
    """Print the grand totals of a project tab."""
    db = next(get_db())
    try:
        tree = ForecastService(db).load(project_id, tab)
    except DomainError as e:
        _fail(f"Could not load {project_id}/{tab}: {e.message}")
    finally:
        db.close()

    df = grand_totals_to_dataframe(compute_grand_totals(tree))
    click.echo(click.style("Grand Totals", fg='cyan', bold=True))
    with pd.option_context('display.max_columns', None, 'display.width', 200):
        click.echo(format_for_display(df).to_string())


@click.command()
@click.argument('project_id')
@click.argument('tab')
@click.argument('cost_code')
@click.argument('variant')
@click.option('--set', 'assignments', multiple=True, required=True,
              help='FIELD=VALUE, e.g. --set method=bell --set 2025-02=1500')
def edit(project_id: str, tab: str, cost_code: str, variant: str, assignments: Tuple[str, ...]):
    """Edit one row and save it.

    VARIANT is a row name such as 'Current Forecast' or current-forecast.
    """
    try:
        path = RowPath(cost_code, ForecastVariant.parse(variant))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='VARIANT')
    fields = _parse_assignments(assignments)

    db = next(get_db())
    try:
        editor = ForecastService(db).edit(project_id, tab, path, fields)
    except DomainError as e:
        _fail(f"Edit rejected [{e.code}]: {e.message}")
    finally:
        db.close()

    summary = editor.tree.row_summary(path)
    click.echo(click.style(f"Saved {' / '.join(path.segments)}", fg='green'))
    click.echo(f"  Total:             ${summary['total']:>15,.2f}")
    if summary['balance_to_finish'] is not None:
        click.echo(f"  Balance to Finish: ${summary['balance_to_finish']:>15,.2f}")
    for total in editor.grand_totals:
        click.echo(f"  {total.label + ':':<24} ${float(total.total):>15,.2f}")


def register_commands(cli):
    """Register forecast commands with main CLI."""
    for command in (init_db_command, seed, show, totals, edit):
        cli.add_command(command)
