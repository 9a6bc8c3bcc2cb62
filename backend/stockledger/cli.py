# Overview: Flask CLI command groups for bootstrap, scheduled scans, and maintenance.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Users (each user is a tenant):
# - python -m flask users create --username shop1 --email shop1@example.com --password "Password123!"
#   Create a user (prompts if options are omitted).
# - python -m flask users list
#   List all users with active status.
#
# Notifications (point cron at these, or at backend/scripts/trigger_scans.py):
# - python -m flask notifications scan-stock [--force] [--user-id 1]
#   Low-stock alerts for every tenant (or one). --force bypasses the daily dedup.
# - python -m flask notifications scan-payments [--window-days 7] [--user-id 1]
#   Payment-due reminders for PENDING transactions due inside the window.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired/revoked session tokens older than 30 days.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .errors import ApiError
from .models import User
from .services.auth_service import create_user
from .services import notification_service, session_service


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(username, email, password):
    """
    Create a new user (tenant).

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(username=username, email=email, password=password)
    except ApiError as e:
        click.echo(f"FAIL {e.message}")
        for field, messages in (e.errors or {}).items():
            for message in messages:
                click.echo(f"     {field}: {message}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.username} ({user.email})")
    click.echo(f"     User ID: {user.id}")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<35} {'Active':<8}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<35} {active_str:<8}")

    click.echo("="*80 + "\n")


@click.group('notifications')
def notifications_group():
    """Scheduled notification scans."""


@notifications_group.command('scan-stock')
@click.option('--force', is_flag=True, help='Bypass the once-per-day dedup')
@click.option('--user-id', type=int, help='Scan a single tenant')
@with_appcontext
def scan_stock_cli(force, user_id):
    """Create low-stock alerts."""
    result = notification_service.scan_stock_alerts(user_id=user_id, force=force)
    click.echo(f"PASS Stock scan: created={result.created} skipped={result.skipped} failed={result.failed}")
    if result.failed:
        raise SystemExit(1)


@notifications_group.command('scan-payments')
@click.option('--window-days', type=int, help='Days ahead to look (default: PAYMENT_DUE_WINDOW_DAYS)')
@click.option('--user-id', type=int, help='Scan a single tenant')
@with_appcontext
def scan_payments_cli(window_days, user_id):
    """Create payment-due reminders."""
    if window_days is None:
        window_days = current_app.config["PAYMENT_DUE_WINDOW_DAYS"]
    result = notification_service.scan_payment_due(user_id=user_id, window_days=window_days)
    click.echo(f"PASS Payment scan: created={result.created} skipped={result.skipped} failed={result.failed}")
    if result.failed:
        raise SystemExit(1)


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired or revoked sessions older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired or revoked sessions.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(users_group)
    app.cli.add_command(notifications_group)
    app.cli.add_command(maintenance_group)
