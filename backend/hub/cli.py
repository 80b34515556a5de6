# Overview: Flask CLI command groups for bootstrap, backups, cycle upkeep and maleta inspection.

# backend/hub/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app hub <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask --app hub system init-db
#   Create missing tables (idempotent).
# - python -m flask --app hub system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Backups:
# - python -m flask --app hub data export backup.json
#   Write {reps, prods, movs, exportDate} to a JSON file.
# - python -m flask --app hub data import backup.json --yes
#   Replace representatives, products and movements with a backup (all-or-nothing).
#
# Cycles:
# - python -m flask --app hub cycles refresh-overdue
#   Mark OPEN cycles past their due date as OVERDUE.
#
# Maletas:
# - python -m flask --app hub maletas summary
#   Print the per-representative summary table.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    from . import models  # noqa: F401

    db.create_all()
    click.echo("PASS Database schema ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('data')
def data_group():
    """Backup export and restore."""


@data_group.command('export')
@click.argument('path', type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def export_data(path):
    """Write the full dataset to PATH as JSON."""
    from .services.import_service import export_dataset

    data = export_dataset()
    with open(path, 'w', encoding='utf-8') as fh:
        json.dump(data, fh, ensure_ascii=False, indent=2)

    click.echo(f"PASS Exported {len(data['reps'])} representatives, {len(data['prods'])} products, "
               f"{len(data['movs'])} movements to {path}")


@data_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def import_data(path, yes):
    """Replace the dataset with the backup at PATH."""
    from .services.import_service import load_backup_text, restore_dataset
    from .services.state_store import commit_atomically

    if not yes:
        click.confirm("WARN This will REPLACE all representatives, products and movements. Are you sure?", abort=True)

    with open(path, encoding='utf-8') as fh:
        text = fh.read()

    try:
        data = load_backup_text(text)
        counts = commit_atomically(lambda: restore_dataset(data))
    except ValidationError as e:
        click.echo(f"FAIL Backup rejected, nothing was changed: {e}")
        raise SystemExit(1)

    click.echo(f"PASS Restored {counts['reps']} representatives, {counts['prods']} products, "
               f"{counts['movs']} movements")


@click.group('cycles')
def cycles_group():
    """Consignment cycle upkeep."""


@cycles_group.command('refresh-overdue')
@with_appcontext
def refresh_overdue():
    """Flag OPEN cycles whose settlement deadline has passed."""
    from .services.cycle_service import refresh_overdue_cycles
    from .services.state_store import commit_atomically

    updated = commit_atomically(refresh_overdue_cycles)
    click.echo(f"PASS {updated} cycle(s) marked OVERDUE")


@click.group('maletas')
def maletas_group():
    """Maleta inspection commands."""


@maletas_group.command('summary')
@with_appcontext
def maletas_summary():
    """Print one line per representative."""
    from .services.summary_service import get_maleta_summaries

    summaries = get_maleta_summaries()
    if not summaries:
        click.echo("No representatives found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<25} {'Delivered':>12} {'Sold':>12} {'Rate':>6} {'Commission':>12} {'Owner':>12} {'Pieces':>7}")
    click.echo("="*100)
    for s in summaries:
        click.echo(
            f"{s.rep_id:<5} {s.rep_name[:25]:<25} {s.total_delivered_cents / 100:>12.2f} {s.sold_cents / 100:>12.2f} "
            f"{s.commission_percentage:>5.0f}% {s.commission_cents / 100:>12.2f} {s.owner_cents / 100:>12.2f} "
            f"{s.current_stock_qty:>7}"
        )
    click.echo("="*100 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(data_group)
    app.cli.add_command(cycles_group)
    app.cli.add_command(maletas_group)
