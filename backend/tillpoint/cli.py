# Overview: Flask CLI command groups for provisioning, seeding, and user bootstrap.

# backend/tillpoint/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--no-seed]
#   Idempotent bootstrap: creates missing tables, then seeds demo users/catalog.
# - python -m flask system provision
#   Create missing tables only.
# - python -m flask system seed
#   Seed (or re-seed) demo users, categories, and products.
# - python -m flask system reset-data --yes
#   Delete every row from every table (schema kept).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables.
#
# Users:
# - python -m flask users list
# - python -m flask users create --username jane --name "Jane Doe" --role cashier --password "secret1"

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .models import User
from .models.auth import USER_ROLES
from .services import provisioning_service, user_service
from .services.auth_service import PasswordValidationError
from .validation import ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


def _provision() -> list[str]:
    try:
        return provisioning_service.provision_schema()
    except SQLAlchemyError as exc:
        raise click.ClickException(f"Schema provisioning failed: {exc}")


def _seed() -> provisioning_service.SeedReport:
    try:
        return provisioning_service.seed_demo_data(db.session)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise click.ClickException(f"Seeding failed: {exc}")


def _echo_seed_report(report: provisioning_service.SeedReport) -> None:
    if report.total_created:
        created = ", ".join(f"{table}={n}" for table, n in sorted(report.created.items()))
        click.echo(f"PASS Seeded rows: {created}")
    else:
        click.echo("PASS Demo data already present, nothing created")


@system_group.command('init')
@click.option('--seed/--no-seed', default=True, show_default=True, help='Seed demo users and catalog')
@with_appcontext
def init_system(seed):
    """
    Initialize the database: create missing tables and (optionally) demo data.

    Safe to run repeatedly. Demo logins: admin/admin123, cashier/cashier123.

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing Tillpoint...")

    tables = _provision()
    click.echo(f"PASS Tables ready: {', '.join(tables)}")

    if seed:
        _echo_seed_report(_seed())
        click.echo("\n=== Default Login Credentials ===")
        for entry in provisioning_service.DEMO_USERS:
            click.echo(f"{entry['role'].title()}: {entry['username']} / {entry['password']}")
        click.echo("=================================")


@system_group.command('provision')
@with_appcontext
def provision_cli():
    """Create missing tables (no data)."""
    tables = _provision()
    click.echo(f"PASS Tables ready: {', '.join(tables)}")


@system_group.command('seed')
@with_appcontext
def seed_cli():
    """Seed demo users, categories, and products (idempotent)."""
    _echo_seed_report(_seed())


@system_group.command('reset-data')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_data_cli(yes):
    """
    DANGER: Delete ALL rows from all tables, keeping the schema.
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    counts = provisioning_service.reset_data(db.session)
    click.echo("PASS All tables have been emptied")
    for table, count in counts.items():
        click.echo(f"   {table}: {count} rows")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to seed.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(USER_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, name, password, role):
    """Create a till user."""
    try:
        user = user_service.create_user(db.session, username=username, password=password, name=name, role=role)
    except (ConflictError, PasswordValidationError) as exc:
        raise click.ClickException(str(exc))

    click.echo(f"PASS Created user {user.username} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Username':<20} {'Name':<25} {'Role':<10} {'Active'}")
    click.echo("=" * 70)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.name:<25} {user.role:<10} {active_str}")
    click.echo("=" * 70 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
