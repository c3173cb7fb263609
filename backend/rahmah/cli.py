# Overview: Flask CLI command groups for bootstrap, tenants, staff users and the notification outbox.

# backend/rahmah/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant management (MULTI-TENANT):
# - python -m flask tenants list
#   List all tenants.
# - python -m flask tenants create --name "Masjid Al-Noor" --slug al-noor --email office@al-noor.org
#   Create a new tenant.
#
# Staff users:
# - python -m flask users list [--tenant-slug al-noor]
#   List users with role and active status.
# - python -m flask users create --tenant-slug al-noor --name "Aisha Khan" --email aisha@al-noor.org --password "Password123!" --role admin
#   Create a user (prompts if options are omitted). super_admin takes no tenant.
#
# Notification outbox:
# - python -m flask notifications dispatch [--limit 50]
#   Send pending emails now.
# - python -m flask notifications retry-failed
#   Re-queue emails that exhausted their attempts.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, NotificationOutbox
from .permissions import ALL_USER_ROLES, Role
from .services import notification_service, tenant_service
from .services.auth_service import create_user, PasswordValidationError
from .services.tenant_service import TenantAccessError
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
    db.create_all()
    click.echo("PASS Tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask tenants create' to add a tenant.")


@click.group('tenants')
def tenants_group():
    """Tenant (organization) management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants_cli():
    """List all tenants."""
    tenants = tenant_service.list_tenants()
    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo(f"{'ID':<5} {'Slug':<24} {'Active':<8} {'Name'}")
    for tenant in tenants:
        click.echo(f"{tenant.id:<5} {tenant.slug:<24} {str(tenant.is_active):<8} {tenant.name}")


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@click.option('--slug', required=True, help='Public slug (unique)')
@click.option('--email', help='Contact email; receives intake notifications')
@with_appcontext
def create_tenant_cli(name, slug, email):
    """Create a new tenant."""
    try:
        tenant = tenant_service.create_tenant({"name": name, "slug": slug, "email": email})
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Slug: {tenant.slug})")


@click.group('users')
def users_group():
    """Staff user inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--tenant-slug', help='Tenant slug (omit for super_admin)')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ALL_USER_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(tenant_slug, name, email, password, role):
    """
    Create a staff user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    tenant_id = None
    if role != Role.SUPER_ADMIN:
        if not tenant_slug:
            click.echo("FAIL --tenant-slug is required for tenant staff")
            return
        try:
            tenant_id = tenant_service.get_tenant_by_slug(tenant_slug).id
        except TenantAccessError as e:
            click.echo(f"FAIL {e}")
            return

    try:
        user = create_user(name, email, password, role, tenant_id=tenant_id)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{user.role}'")
    if user.internal_email:
        click.echo(f"     Internal email: {user.internal_email}")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@click.option('--tenant-slug', help='Filter by tenant slug')
@with_appcontext
def list_users(tenant_slug):
    """List users with role and active status."""
    query = db.session.query(User)

    if tenant_slug:
        try:
            tenant = tenant_service.get_tenant_by_slug(tenant_slug, active_only=False)
        except TenantAccessError as e:
            click.echo(f"FAIL {e}")
            return
        query = query.filter_by(tenant_id=tenant.id)

    users = query.order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Tenant':<7} {'Name':<24} {'Email':<34} {'Active':<8} {'Role'}")
    click.echo("="*100)

    for user in users:
        tenant_label = str(user.tenant_id) if user.tenant_id else "-"
        click.echo(
            f"{user.id:<5} {tenant_label:<7} {user.name[:23]:<24} {user.email[:33]:<34} "
            f"{str(user.is_active):<8} {user.role}"
        )


@click.group('notifications')
def notifications_group():
    """Notification outbox delivery commands."""


@notifications_group.command('dispatch')
@click.option('--limit', type=int, default=None, help='Maximum rows to send')
@with_appcontext
def dispatch_cli(limit):
    """Send pending outbox emails."""
    counts = notification_service.dispatch_pending(limit=limit)
    pending = db.session.query(NotificationOutbox).filter_by(status="pending").count()
    click.echo(
        f"PASS Sent {counts['sent']}, retrying {counts['retrying']}, failed {counts['failed']}; "
        f"{pending} still pending"
    )


@notifications_group.command('retry-failed')
@with_appcontext
def retry_failed_cli():
    """Re-queue failed outbox emails with a fresh attempt budget."""
    count = notification_service.retry_failed()
    click.echo(f"PASS Re-queued {count} failed notification(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)  # Multi-tenant management
    app.cli.add_command(users_group)
    app.cli.add_command(notifications_group)
