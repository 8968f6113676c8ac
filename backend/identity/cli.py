# Overview: Flask CLI command groups for account administration and maintenance.

# backend/identity/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent). Use `flask db upgrade` for migrated deployments.
#
# Account administration:
# - python -m flask accounts list [--role vendor] [--status suspended] [--include-hidden]
#   List accounts. Deleted and inactive accounts appear only with --include-hidden.
# - python -m flask accounts create --email a@b.com --first-name Ada --last-name Lovelace [--role admin]
#   Create an account (prompts for password and confirmation).
# - python -m flask accounts show a@b.com [--include-hidden]
#   Print the public profile as JSON.
# - python -m flask accounts activity a@b.com --limit 20
#   Show the most recent activity entries.
# - python -m flask accounts delete a@b.com
#   Soft-delete (account_status=deleted). The row is kept.
# - python -m flask accounts restore a@b.com
#   Undo a soft delete.
# - python -m flask accounts suspend a@b.com --reason "Chargeback fraud"
# - python -m flask accounts reinstate a@b.com
# - python -m flask accounts set-active a@b.com --inactive
# - python -m flask accounts issue-reset-token a@b.com
#   Admin-assisted recovery: prints a reset token ONCE. It is not stored in clear.
#
# Vendor verification:
# - python -m flask vendors list --status pending
# - python -m flask vendors approve shop@b.com [--note "Docs checked"]
# - python -m flask vendors reject shop@b.com --reason "License expired"
# - python -m flask vendors reset shop@b.com
#   Re-review: move a verified/rejected vendor back to pending.
#
# Maintenance:
# - python -m flask maintenance purge-expired-tokens
#   Clear reset/verification token slots whose expiry has passed.

import json
from datetime import timedelta

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .validation import ConflictError, ValidationError
from .services import account_service
from .services import activity_service
from .services import credential_service
from .services import maintenance_service
from .services import verification_service
from .services.profile_service import full_name, public_profile
from .services.verification_service import VerificationTransitionError
from .services.visibility_service import AccountNotFoundError, find_account_by_email
from .time_utils import to_utc_z


ADMIN_ERRORS = (ValidationError, ConflictError, AccountNotFoundError, VerificationTransitionError)


def _resolve(email: str, include_hidden: bool = True):
    """Admin commands address accounts by email and may see hidden ones."""
    account = find_account_by_email(email, include_hidden=include_hidden, required=False)
    if account is None:
        click.echo(f"FAIL Account '{email}' not found")
    return account


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


# =============================================================================
# ACCOUNTS
# =============================================================================


@click.group('accounts')
def accounts_group():
    """Account inspection and administration."""


@accounts_group.command('list')
@click.option('--role', type=click.Choice(['buyer', 'vendor', 'admin']), help='Filter by role')
@click.option('--status', type=click.Choice(['active', 'suspended', 'deleted', 'archived']), help='Filter by account status')
@click.option('--include-hidden', is_flag=True, help='Include deleted and inactive accounts')
@with_appcontext
def list_accounts(role, status, include_hidden):
    """List accounts."""
    accounts = account_service.list_accounts(role=role, status=status, include_hidden=include_hidden)

    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<6} {'Email':<34} {'Name':<24} {'Role':<8} {'Status':<10} {'Active'}")
    click.echo("=" * 100)
    for account in accounts:
        active_str = "Yes" if account.is_active else "No"
        click.echo(
            f"{account.id:<6} {account.email:<34} {full_name(account):<24} "
            f"{account.role:<8} {account.account_status:<10} {active_str}"
        )
    click.echo("=" * 100 + "\n")


@accounts_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--first-name', prompt=True, help='First name')
@click.option('--last-name', prompt=True, help='Last name')
@click.option('--role', type=click.Choice(['buyer', 'vendor', 'admin']), default='buyer', show_default=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password (8+ chars)')
@with_appcontext
def create_account(email, first_name, last_name, role, password):
    """Create an account."""
    try:
        account = account_service.register_account(
            email=email,
            password=password,
            # click's confirmation_prompt already compared the two entries
            password_confirm=password,
            first_name=first_name,
            last_name=last_name,
            role=role,
            rounds=current_app.config["BCRYPT_ROUNDS"],
        )
    except ADMIN_ERRORS as e:
        click.echo(f"FAIL Failed to create account: {e}")
        return
    click.echo(f"PASS Created account: {account.email} (ID: {account.id}, role: {account.role})")


@accounts_group.command('show')
@click.argument('email')
@click.option('--include-hidden', is_flag=True, help='Allow deleted and inactive accounts')
@with_appcontext
def show_account(email, include_hidden):
    """Print the public profile of an account."""
    account = _resolve(email, include_hidden=include_hidden)
    if account is None:
        return
    click.echo(json.dumps(public_profile(account), indent=2, sort_keys=True))


@accounts_group.command('activity')
@click.argument('email')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def show_activity(email, limit):
    """Most recent activity entries, newest first."""
    account = _resolve(email)
    if account is None:
        return
    entries = activity_service.get_activity(account, limit=limit)
    if not entries:
        click.echo("No activity recorded.")
        return
    for entry in entries:
        click.echo(
            f"{to_utc_z(entry.occurred_at)}  {entry.action:<30} {entry.description or ''}"
            f"{'  ip=' + entry.ip_address if entry.ip_address else ''}"
        )


def _run_admin_action(email, action, success_message, include_hidden=True):
    account = _resolve(email, include_hidden=include_hidden)
    if account is None:
        return None
    try:
        result = action(account.id)
    except ADMIN_ERRORS as e:
        click.echo(f"FAIL {e}")
        return None
    click.echo(f"PASS {success_message.format(email=account.email)}")
    return result


@accounts_group.command('delete')
@click.argument('email')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def delete_account(email, yes):
    """Soft-delete an account."""
    if not yes:
        click.confirm(f"Soft-delete {email}?", abort=True)
    _run_admin_action(email, account_service.soft_delete_account, "Deleted {email}", include_hidden=False)


@accounts_group.command('restore')
@click.argument('email')
@with_appcontext
def restore_account(email):
    """Undo a soft delete."""
    _run_admin_action(email, account_service.restore_account, "Restored {email}")


@accounts_group.command('suspend')
@click.argument('email')
@click.option('--reason', required=True, help='Reason shown to support staff')
@with_appcontext
def suspend_account(email, reason):
    _run_admin_action(
        email,
        lambda account_id: account_service.suspend_account(account_id, reason),
        "Suspended {email}",
        include_hidden=False,
    )


@accounts_group.command('reinstate')
@click.argument('email')
@with_appcontext
def reinstate_account(email):
    _run_admin_action(email, account_service.reinstate_account, "Reinstated {email}", include_hidden=False)


@accounts_group.command('set-active')
@click.argument('email')
@click.option('--active/--inactive', default=True)
@with_appcontext
def set_active(email, active):
    """Flip the is_active flag."""
    _run_admin_action(
        email,
        lambda account_id: account_service.set_account_active(account_id, active),
        f"{'Activated' if active else 'Deactivated'} {{email}}",
    )


@accounts_group.command('issue-reset-token')
@click.argument('email')
@with_appcontext
def issue_reset_token(email):
    """Issue a password reset token and print it once."""
    ttl = timedelta(minutes=current_app.config["PASSWORD_RESET_TTL_MINUTES"])
    result = credential_service.request_password_reset(email, ttl=ttl)
    if result is None:
        click.echo(f"FAIL No visible account for '{email}'")
        return
    _, raw_token = result
    click.echo(f"PASS Reset token for {email} (valid {ttl}):")
    click.echo(raw_token)


# =============================================================================
# VENDORS
# =============================================================================


@click.group('vendors')
def vendors_group():
    """Vendor verification review."""


@vendors_group.command('list')
@click.option('--status', type=click.Choice(['pending', 'verified', 'rejected']), default='pending', show_default=True)
@with_appcontext
def list_vendors(status):
    vendors = verification_service.list_vendors_by_status(status)
    if not vendors:
        click.echo(f"No {status} vendors.")
        return
    for account in vendors:
        profile = account.vendor_profile
        click.echo(
            f"{account.id:<6} {account.email:<34} {profile.business_name or '-':<28} "
            f"docs={len(profile.documents)}"
        )


@vendors_group.command('approve')
@click.argument('email')
@click.option('--note', default=None)
@with_appcontext
def approve_vendor(email, note):
    _run_admin_action(
        email,
        lambda account_id: verification_service.approve_vendor(account_id, note=note),
        "Verified {email}",
        include_hidden=False,
    )


@vendors_group.command('reject')
@click.argument('email')
@click.option('--reason', required=True)
@with_appcontext
def reject_vendor(email, reason):
    _run_admin_action(
        email,
        lambda account_id: verification_service.reject_vendor(account_id, reason),
        "Rejected {email}",
        include_hidden=False,
    )


@vendors_group.command('reset')
@click.argument('email')
@click.option('--note', default=None)
@with_appcontext
def reset_vendor(email, note):
    """Send a decided vendor back to pending for re-review."""
    _run_admin_action(
        email,
        lambda account_id: verification_service.reset_verification(account_id, note=note),
        "Verification reset to pending for {email}",
        include_hidden=False,
    )


# =============================================================================
# MAINTENANCE
# =============================================================================


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('purge-expired-tokens')
@with_appcontext
def purge_expired_tokens():
    cleared = maintenance_service.purge_expired_tokens()
    click.echo(f"PASS Cleared {cleared} expired token slot(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(vendors_group)
    app.cli.add_command(maintenance_group)
