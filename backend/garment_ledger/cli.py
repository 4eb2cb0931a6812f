# Overview: Flask CLI command groups for bootstrap, verification, and maintenance.

# backend/garment_ledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Ledger bootstrap/inspection:
# - python -m flask ledger init-db
#   Create all tables (quick bootstrap; use `flask db upgrade` for migrations).
# - python -m flask ledger seed-demo
#   Register a demo fabric, cut some pieces, and add a tailor.
# - python -m flask ledger verify [--item-id FAB-000001]
#   Replay the transaction log and compare with stored quantities. Exit code 1 on mismatch.
# - python -m flask ledger clear-history --yes --actor admin
#   Delete the whole transaction log (quantities are kept).
#
# Workforce:
# - python -m flask workforce list-employees [--role tailor]

import sys

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models.stock import FABRIC
from .models.workforce import EMPLOYEE_ROLES, ROLE_TAILOR
from .services import workforce_service
from .services.stock_engine import get_stock_engine


@click.group('ledger')
def ledger_group():
    """Stock ledger bootstrap and verification commands."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@ledger_group.command('verify')
@click.option('--item-id', default=None, help='Verify a single item')
@with_appcontext
def verify_ledger(item_id):
    """
    Check every item's log chain against its stored quantity.

    Read-only. Exits with status 1 if any item fails.
    """
    engine = get_stock_engine()
    try:
        reports = [engine.verify_item(item_id)] if item_id else engine.verify_all()
    except LedgerError as exc:
        click.echo(f"FAIL {exc.message}")
        sys.exit(1)

    failures = 0
    for report in reports:
        if report["ok"]:
            click.echo(f"PASS {report['item_id']}: {report['quantity']} ({report['transactions']} transactions)")
            continue
        failures += 1
        click.echo(f"FAIL {report['item_id']}:")
        for problem in report["problems"]:
            click.echo(f"  - {problem}")

    click.echo(f"Verified {len(reports)} item(s), {failures} failure(s)")
    if failures:
        sys.exit(1)


@ledger_group.command('clear-history')
@click.option('--yes', is_flag=True, help='Confirm deleting the entire transaction log')
@click.option('--actor', required=True, help='Who is clearing the history')
@with_appcontext
def clear_history(yes, actor):
    """Delete every transaction. Item quantities are not changed."""
    if not yes:
        click.echo("Refusing to clear history without --yes")
        sys.exit(1)

    try:
        deleted = get_stock_engine().clear_history(actor, confirm=True)
    except LedgerError as exc:
        click.echo(f"FAIL {exc.message}")
        sys.exit(1)
    click.echo(f"PASS Deleted {deleted} transaction(s)")


@ledger_group.command('seed-demo')
@click.option('--actor', default='seed', help='Actor recorded on demo transactions')
@with_appcontext
def seed_demo(actor):
    """Register a demo fabric roll, cut pieces from it, and add a tailor."""
    engine = get_stock_engine()

    try:
        fabric = engine.create_item(
            kind=FABRIC,
            name="Cotton Poplin",
            actor=actor,
            roll_length=50,
            roll_width=1.5,
            color="White",
            material="Cotton",
            reason="demo intake",
        ).item
        click.echo(f"PASS Registered {fabric.id}: {fabric.to_dict()['quantity']} {fabric.unit}")

        cut = engine.cut(
            fabric.id,
            piece_length=0.8,
            piece_width=0.5,
            piece_count=20,
            actor=actor,
            product_name="Shirt front panel",
            usage_location="Table 1",
        )
        click.echo(f"PASS Cut {cut.cutting_record.piece_count} pieces into {cut.cut_piece.id}")

        tailor = workforce_service.create_employee(db.session, name="Demo Tailor", role=ROLE_TAILOR)
        click.echo(f"PASS Added tailor {tailor.employee_code}")
    except LedgerError as exc:
        click.echo(f"FAIL {exc.message}")
        sys.exit(1)


@click.group('workforce')
def workforce_group():
    """Employee inspection commands."""


@workforce_group.command('list-employees')
@click.option('--role', type=click.Choice(EMPLOYEE_ROLES), default=None, help='Filter by role')
@with_appcontext
def list_employees(role):
    employees = workforce_service.list_employees(db.session, role=role)
    if not employees:
        click.echo("No employees found")
        return

    click.echo(f"{'Code':<12} {'Name':<30} {'Role':<12} {'Active'}")
    click.echo("-" * 64)
    for employee in employees:
        click.echo(f"{employee.employee_code:<12} {employee.name:<30} {employee.role:<12} {employee.is_active}")


def register_commands(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(ledger_group)
    app.cli.add_command(workforce_group)
