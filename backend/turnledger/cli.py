# Overview: Flask CLI command groups for bootstrap, user admin, and the daily reset.

# backend/turnledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to turnledger (PowerShell: $env:FLASK_APP="turnledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users (PINs are provisioned here; there is no self-service PIN setup):
# - python -m flask users list
# - python -m flask users create --name "Ana" --pin 4821 --role technician
# - python -m flask users set-pin 3 9904
#
# Ledger:
# - python -m flask ledger reset-daily [--date 2026-10-19]
#   Archive and clear one business day (defaults to today).
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, USER_ROLES
from .services.auth_service import create_user, set_user_pin, PinValidationError
from .services import reset_service
from .services import session_service
from .time_utils import parse_business_date


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Schema ready.")


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
    """User inspection and PIN provisioning."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*72)
    click.echo(f"{'ID':<5} {'Name':<24} {'Role':<12} {'Timezone':<20} {'Shift'}")
    click.echo("="*72)

    for user in users:
        shift = f"{user.session_start_time}-{user.session_end_time}"
        click.echo(f"{user.id:<5} {user.name:<24} {user.role:<12} {user.timezone:<20} {shift}")


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--pin', prompt=True, hide_input=True, confirmation_prompt=True, help='4-8 digit PIN')
@click.option('--role', type=click.Choice(USER_ROLES), default='technician', show_default=True)
@click.option('--timezone', 'tz_name', default='America/Los_Angeles', show_default=True)
@click.option('--shift-start', default='09:00', show_default=True)
@click.option('--shift-end', default='21:00', show_default=True)
@with_appcontext
def create_user_cmd(name, pin, role, tz_name, shift_start, shift_end):
    """Create a PIN user."""
    try:
        user = create_user(
            name=name,
            pin=pin,
            role=role,
            timezone=tz_name,
            session_start_time=shift_start,
            session_end_time=shift_end,
        )
    except (PinValidationError, ValueError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user {user.name} (ID: {user.id}, role: {user.role})")


@users_group.command('set-pin')
@click.argument('user_id', type=int)
@click.argument('pin')
@with_appcontext
def set_pin_cmd(user_id, pin):
    """Replace a user's PIN."""
    try:
        user = set_user_pin(user_id, pin)
    except (PinValidationError, ValueError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS PIN updated for {user.name} (ID: {user.id})")


@click.group('ledger')
def ledger_group():
    """Ledger maintenance commands."""


@ledger_group.command('reset-daily')
@click.option('--date', 'date_str', default=None, help='Business date (YYYY-MM-DD); defaults to today')
@with_appcontext
def reset_daily_cmd(date_str):
    """Archive and clear one business day."""
    try:
        business_date = parse_business_date(date_str)
    except ValueError:
        raise click.BadParameter("Use YYYY-MM-DD", param_hint="--date")

    archived = reset_service.archive_business_day(business_date)
    click.echo(f"PASS Reset completed. Archived {archived} transactions.")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', default=30, show_default=True, type=int)
@with_appcontext
def cleanup_sessions_cmd(retention_days):
    """Delete expired or revoked session tokens older than the retention window."""
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"PASS Deleted {deleted} session tokens.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(maintenance_group)
