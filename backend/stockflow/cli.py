# Overview: Flask CLI command groups for bootstrap, accounts and units.

# backend/stockflow/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (existing data is kept).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system cleanup-sessions
#   Delete expired or revoked session tokens older than 30 days.
#
# Accounts:
# - python -m flask users create --email owner@shop.local --password "Password123!"
#   Create a shop account with an empty profile and the default units.
# - python -m flask users list
#   List all accounts with active status and product count.
#
# Units:
# - python -m flask units seed --email owner@shop.local
#   Re-add any default unit missing from an account (existing units untouched).

import click
from flask.cli import with_appcontext

from .errors import StockflowError
from .extensions import db
from .models import Product, User
from .services.auth_service import create_user, normalize_email
from .services.profile_service import seed_default_units
from .services.session_service import cleanup_expired_sessions


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables ready.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask users create' to add an account.")


@system_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    """Delete expired or revoked session tokens older than 30 days."""
    deleted = cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} session token(s)")

@click.group('users')
def users_group():
    """Account management commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(email, password):
    """
    Create a shop account.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(email=email, password=password)
    except StockflowError as e:
        db.session.rollback()
        raise click.ClickException(e.message)

    click.echo(f"PASS Created account: {user.email} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all accounts."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*72)
    click.echo(f"{'ID':<5} {'Email':<40} {'Active':<8} {'Products'}")
    click.echo("="*72)

    for user in users:
        product_count = db.session.query(Product).filter_by(account_id=user.id, is_active=True).count()
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<40} {active_str:<8} {product_count}")

    click.echo("="*72 + "\n")


@click.group('units')
def units_group():
    """Unit maintenance commands."""


@units_group.command('seed')
@click.option('--email', required=True, help='Account email')
@with_appcontext
def seed_units(email):
    """Add the default units an account is missing."""
    user = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if not user:
        raise click.ClickException(f"No account found for {email}")

    created = seed_default_units(user.id)
    db.session.commit()
    click.echo(f"PASS Added {created} unit(s) to {user.email}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(units_group)
