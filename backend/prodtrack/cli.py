# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/prodtrack/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--area corte]
#   List operators with their area and active status.
# - python -m flask users create --username ana --name "Ana" --area corte
#   Create an operator (prompts if options are omitted).
#
# Ledger audit:
# - python -m flask ledger check
#   Verify every unit's pieces add up to total_pieces. Exits 1 on violation.

import click
from flask.cli import with_appcontext

from .errors import ValidationError
from .extensions import db
from .models import Area, User
from .services import actor_service, ledger_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables. Safe to run more than once."""
    click.echo("START Initializing prodtrack schema...")
    db.create_all()
    click.echo("PASS Tables ready.")


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


@click.group('users')
def users_group():
    """Operator management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name')
@click.option('--area', type=click.Choice([a.value for a in Area]), prompt=True, help='Area')
@click.option('--inactive', is_flag=True, help='Create the user disabled')
@with_appcontext
def create_user_cli(username, name, area, inactive):
    """Create an operator assigned to an area."""
    if db.session.query(User).filter_by(username=username).first():
        click.echo(f"FAIL User '{username}' already exists")
        raise SystemExit(1)

    try:
        user = actor_service.create_user(
            username=username, name=name, area=area, is_active=not inactive
        )
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) in area '{user.area}'")


@users_group.command('list')
@click.option('--area', help='Filter by area')
@with_appcontext
def list_users(area):
    """List all operators."""
    query = db.session.query(User)

    if area:
        query = query.filter_by(area=area)

    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*72)
    click.echo(f"{'ID':<5} {'Username':<20} {'Name':<24} {'Area':<12} {'Active'}")
    click.echo("="*72)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.name:<24} {user.area:<12} {active_str}")

    click.echo("="*72 + "\n")


@click.group('ledger')
def ledger_group():
    """Piece ledger audit commands."""


@ledger_group.command('check')
@with_appcontext
def check_ledger():
    """Report units whose custody records do not add up to total_pieces."""
    violations = ledger_service.find_conservation_violations()
    if not violations:
        click.echo("PASS Piece ledger balanced for every unit.")
        return

    for v in violations:
        click.echo(
            f"FAIL Unit {v['unit_id']} ({v['folio']}): ledger holds {v['ledger_pieces']} "
            f"of {v['total_pieces']} pieces"
        )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
