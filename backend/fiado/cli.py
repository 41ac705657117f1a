# Overview: Flask CLI command groups for bootstrap and ledger inspection.

# backend/fiado/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Organization management:
# - python -m flask orgs list
# - python -m flask orgs create --name "Tienda Don Jose" --code "TDJ"
#   Create a tenant together with its receipt and invoice sequences.
#
# Users:
# - python -m flask users create --org-code TDJ --username cajero --email cajero@tdj.local --password "Cajero2024"
#
# Credit ledger:
# - python -m flask credits summary --org-code TDJ
#   Print outstanding balance, open credits, customers with debt and overdue credits.

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Organization, User
from .money import format_cents
from .services import credit_service
from .services.auth_service import create_user, PasswordValidationError
from .services.tenant_service import create_organization, get_organization_by_code
from .validation import ValidationError


def _require_org(org_code: str) -> Organization | None:
    org = get_organization_by_code(org_code)
    if not org:
        click.echo(f"FAIL Organization with code '{org_code}' not found")
    return org


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


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

    click.echo("PASS Database reset complete")


@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.id).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Users'}")
    click.echo("=" * 70)

    for org in orgs:
        user_count = db.session.query(User).filter_by(org_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"
        click.echo(f"{org.id:<5} {org.name:<30} {org.code or '-':<15} {active_str:<8} {user_count}")

    click.echo("=" * 70 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@click.option('--receipt-prefix', default=None, help='Payment receipt prefix (default from RECEIPT_PREFIX)')
@click.option('--invoice-prefix', default=None, help='Invoice prefix (default from INVOICE_PREFIX)')
@with_appcontext
def create_org_cli(name, code, receipt_prefix, invoice_prefix):
    """Create a new organization (tenant)."""
    try:
        org = create_organization(name, code, receipt_prefix=receipt_prefix, invoice_prefix=invoice_prefix)
    except (LedgerError, ValidationError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


@click.group('users')
def users_group():
    """Operator account commands."""


@users_group.command('create')
@click.option('--org-code', required=True, help='Organization code')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(org_code, username, email, password):
    """
    Create an operator inside an organization.

    Password must have at least 8 characters with letters and digits.
    """
    org = _require_org(org_code)
    if not org:
        return

    try:
        user = create_user(org.id, username, email, password)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except LedgerError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) in org '{org.name}'")


@click.group('credits')
def credits_group():
    """Credit ledger inspection commands."""


@credits_group.command('summary')
@click.option('--org-code', required=True, help='Organization code')
@with_appcontext
def credits_summary_cli(org_code):
    """Print the credit ledger summary of an organization."""
    org = _require_org(org_code)
    if not org:
        return

    summary = credit_service.get_summary(org.id)

    click.echo(f"Credit summary for {org.name} ({org.code})")
    click.echo(f"  Outstanding balance:  {format_cents(summary['total_pending_cents'])}")
    click.echo(f"  Open credits:         {summary['total_credits']}")
    click.echo(f"  Customers with debt:  {summary['customers_with_debt']}")
    click.echo(f"  Overdue credits:      {summary['overdue_credits']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)
    app.cli.add_command(users_group)
    app.cli.add_command(credits_group)
