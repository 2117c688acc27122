# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/rewards/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-username admin] [--admin-password ...]
#   Idempotent bootstrap: creates tables, the settings row, and the admin account.
# - python -m flask system seed-demo
#   Adds the demo employees and catalog items (skips ones that already exist).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Account inspection:
# - python -m flask accounts list [--role employee] [--all]
#
# Catalog inspection/maintenance:
# - python -m flask catalog list [--all]
# - python -m flask catalog reprice
#   Re-derive every current price from the stored inflation rate.

import click
from flask.cli import with_appcontext

from .errors import RewardsError
from .extensions import db
from .models.accounts import ROLE_ADMIN, ROLE_EMPLOYEE
from .services import accounts_service, catalog_service, settings_service


DEMO_EMPLOYEES = [
    # username, display name, password, points, requires_password_change
    ("employee1", "Alex Reyes", "password123", 1500, False),
    ("employee2", "Bea Santos", "password", 800, True),
    ("employee3", "Chris David", "password456", 2500, False),
]

DEMO_ITEMS = [
    ("Company Tumbler", 500, 10, "https://placehold.co/300x300/e2e8f0/4a5568?text=Tumbler"),
    ("Branded Hoodie", 1200, 5, "https://placehold.co/300x300/e2e8f0/4a5568?text=Hoodie"),
    ("Wireless Mouse", 800, 15, "https://placehold.co/300x300/e2e8f0/4a5568?text=Mouse"),
    ("Pinnacle Notebook Set", 350, 20, "https://placehold.co/300x300/e2e8f0/4a5568?text=Notebook"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Admin username')
@click.option('--admin-name', default='Admin User', help='Admin display name')
@click.option('--admin-password', default='Pinnacle2024!', help='Admin password')
@with_appcontext
def init_system(admin_username, admin_name, admin_password):
    """
    Create tables, the global settings row and the first admin account.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing rewards store...")

    db.create_all()
    click.echo("PASS Tables ready")

    settings = settings_service.get_settings()
    click.echo(f"PASS Settings ready (theme={settings.theme}, inflation={settings.inflation_percent}%)")

    existing = accounts_service.get_by_username(admin_username)
    if existing:
        click.echo(f"PASS Using existing account: {existing.username} (ID: {existing.id}, role: {existing.role})")
    else:
        try:
            admin = accounts_service.provision_account(
                username=admin_username,
                display_name=admin_name,
                password=admin_password,
                role=ROLE_ADMIN,
                requires_password_change=False,
            )
        except RewardsError as e:
            raise click.ClickException(str(e))
        click.echo(f"PASS Created admin: {admin.username} (ID: {admin.id})")

    click.echo("DONE Initialization complete.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Add demo employees and catalog items. Safe to run repeatedly."""
    for username, name, password, points, must_change in DEMO_EMPLOYEES:
        if accounts_service.get_by_username(username):
            click.echo(f"SKIP Account {username} already exists")
            continue
        accounts_service.provision_account(
            username=username,
            display_name=name,
            password=password,
            role=ROLE_EMPLOYEE,
            points_balance=points,
            requires_password_change=must_change,
        )
        click.echo(f"PASS Created employee {username} ({name}, {points} points)")

    existing_names = {item.name for item in catalog_service.list_items(include_inactive=True)}
    for name, base_price, stock, image_ref in DEMO_ITEMS:
        if name in existing_names:
            click.echo(f"SKIP Item {name} already exists")
            continue
        item = catalog_service.create_item(name=name, base_price=base_price, stock=stock, image_ref=image_ref)
        click.echo(f"PASS Created item {item.name} (price {item.current_price}, stock {item.stock})")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('accounts')
def accounts_group():
    """Account inspection commands."""


@accounts_group.command('list')
@click.option('--role', type=click.Choice([ROLE_ADMIN, ROLE_EMPLOYEE]), help='Filter by role')
@click.option('--all', 'include_inactive', is_flag=True, help='Include removed accounts')
@with_appcontext
def list_accounts(role, include_inactive):
    """List accounts with balances."""
    accounts = accounts_service.list_accounts(role=role, include_inactive=include_inactive)
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Name':<25} {'Role':<10} {'Points':>10} {'Active':>7}")
    click.echo("=" * 80)
    for account in accounts:
        click.echo(
            f"{account.id:<5} {account.username:<20} {account.display_name[:25]:<25} "
            f"{account.role:<10} {account.points_balance:>10} {'Yes' if account.is_active else 'No':>7}"
        )
    click.echo("=" * 80 + "\n")


@click.group('catalog')
def catalog_group():
    """Catalog inspection and maintenance commands."""


@catalog_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include deleted items')
@with_appcontext
def list_catalog(include_inactive):
    """List catalog items with base and current prices."""
    items = catalog_service.list_items(include_inactive=include_inactive)
    if not items:
        click.echo("No catalog items found.")
        return

    click.echo(f"Inflation: {settings_service.get_settings().inflation_percent}%")
    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Base':>10} {'Current':>10} {'Stock':>8} {'Active':>7}")
    click.echo("=" * 80)
    for item in items:
        click.echo(
            f"{item.id:<5} {item.name[:30]:<30} {item.base_price:>10} {item.current_price:>10} "
            f"{item.stock:>8} {'Yes' if item.is_active else 'No':>7}"
        )
    click.echo("=" * 80 + "\n")


@catalog_group.command('reprice')
@with_appcontext
def reprice_catalog():
    """Re-derive current prices from the stored inflation rate."""
    changed = settings_service.reprice_catalog()
    click.echo(f"PASS Repriced catalog ({changed} item(s) changed)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(catalog_group)
