# Overview: Flask CLI command groups for bootstrap, user management and tier maintenance.

# backend/storefront/cli.py
# Commands (run from the backend directory with FLASK_APP=wsgi.py):
#
# - flask system init
#   Idempotent bootstrap: tables, roles, a default owner and a sample shop with its proprietor.
# - flask system reset-db --yes
#   DEV only: drop and recreate all tables (deletes all data).
# - flask users list
# - flask users create --email a@b.c --password "Password123!" --role User
# - flask tiers recompute [--user-id 5]
#   Re-derive stored tiers from sales history.

import click
from flask.cli import with_appcontext

from .errors import StoreError
from .extensions import db
from .models import Shop, User, DEFAULT_ROLES, ROLE_OWNER, ROLE_PROPRIETOR
from .services import auth_service, tier_service


DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables, roles, owner@storefront.local and a sample shop run by
    proprietor@storefront.local. Passwords default to "Password123!".
    """
    click.echo("START Initializing storefront...")
    db.create_all()

    auth_service.create_default_roles()
    db.session.commit()
    click.echo(f"PASS Roles: {', '.join(DEFAULT_ROLES)}")

    owner = db.session.query(User).filter_by(email="owner@storefront.local").first()
    if owner is None:
        owner = auth_service.create_user(
            email="owner@storefront.local",
            password=DEFAULT_PASSWORD,
            username="owner",
            role_name=ROLE_OWNER,
        )
        db.session.commit()
        click.echo("PASS Created owner: owner@storefront.local")
    else:
        click.echo("WARN Owner already exists, skipping...")

    shop = db.session.query(Shop).order_by(Shop.id).first()
    if shop is None:
        shop = Shop(name="Main Street", address="1 Main Street", phone="0000000000")
        db.session.add(shop)
        db.session.commit()
        click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id})")

    if shop.proprietor_user_id is None:
        proprietor = db.session.query(User).filter_by(email="proprietor@storefront.local").first()
        if proprietor is None:
            proprietor = auth_service.create_user(
                email="proprietor@storefront.local",
                password=DEFAULT_PASSWORD,
                username="proprietor",
                role_name=ROLE_PROPRIETOR,
            )
        shop.proprietor_user_id = proprietor.id
        shop.proprietor_email = proprietor.email
        db.session.commit()
        click.echo(f"PASS Assigned proprietor@storefront.local to {shop.name}")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo(f"   owner      -> owner@storefront.local      / {DEFAULT_PASSWORD}")
    click.echo(f"   proprietor -> proprietor@storefront.local / {DEFAULT_PASSWORD}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """DANGER: Drop all tables and recreate schema."""
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Email':<35} {'Tier':<10} {'Active':<8} {'Roles'}")
    for user in users:
        roles_str = ", ".join(sorted(user.role_names)) or "none"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {user.tier:<10} {active_str:<8} {roles_str}")


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', 'role_name', type=click.Choice(DEFAULT_ROLES, case_sensitive=False), default="User")
@click.option('--username', default=None, help='Defaults to the email')
@with_appcontext
def create_user(email, password, role_name, username):
    try:
        user = auth_service.create_user(email=email, password=password, username=username, role_name=role_name)
        db.session.commit()
    except StoreError as e:
        db.session.rollback()
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user {user.email} (ID: {user.id}) with role '{role_name}'")


@click.group('tiers')
def tiers_group():
    """Loyalty tier maintenance."""


@tiers_group.command('recompute')
@click.option('--user-id', type=int, default=None, help='Only this user')
@with_appcontext
def recompute_tiers(user_id):
    try:
        if user_id is not None:
            tier = tier_service.recompute_tier(user_id)
            db.session.commit()
            click.echo(f"PASS User {user_id}: {tier}")
            return
        counts = tier_service.recompute_all_tiers()
        db.session.commit()
    except StoreError as e:
        db.session.rollback()
        raise click.ClickException(e.message)
    for tier, count in counts.items():
        click.echo(f"{tier:<10} {count}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(tiers_group)
