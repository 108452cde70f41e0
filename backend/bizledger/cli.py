# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/bizledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Create two demo businesses with contacts, products, a sale and a purchase.
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all business accounts.
# - python -m flask users create --name "Jane" --email jane@example.com --username jane --business-name "Jane Co" --password "SecurePass123!"
#   Create a business account (prompts if options are omitted).
#
# Maintenance:
# - python -m flask sessions cleanup --older-than-days 30
#   Delete expired or revoked sessions older than the window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Contact, Product
from .services import auth_service, session_service, transaction_service
from .services.auth_service import RegistrationError
from .services.concurrency import PersistenceFailure
from .services.inventory_service import InsufficientStockError
from .services.tenant_service import NotFoundError
from .validation import ConflictError, ValidationError


SEED_PASSWORD = "SecurePass123!"

SEED_BUSINESSES = [
    {
        "user": {
            "name": "John Doe",
            "email": "john@example.com",
            "username": "johndoe",
            "business_name": "Johns Business",
        },
        "contacts": [
            {"name": "Alice Brown", "email": "alice@example.com", "phone": "555-0101",
             "address": "12 Market Street", "type": "customer"},
            {"name": "Bob Wilson", "email": "bob@example.com", "phone": "555-0102",
             "address": "40 Supply Road", "type": "vendor"},
        ],
        "products": [
            {"name": "Widget", "description": "Standard widget", "price_cents": 1999,
             "stock": 10, "category": "Hardware"},
            {"name": "Gadget", "description": "Handy gadget", "price_cents": 4950,
             "stock": 2, "category": "Hardware"},
        ],
    },
    {
        "user": {
            "name": "Jane Smith",
            "email": "jane@example.com",
            "username": "janesmith",
            "business_name": "Janes Enterprises",
        },
        "contacts": [
            {"name": "Charlie Davis", "email": "charlie@example.com", "phone": "555-0201",
             "address": "7 Harbor Lane", "type": "customer"},
            {"name": "Dana Supply Co", "email": "orders@danasupply.example.com", "phone": "555-0202",
             "type": "vendor"},
        ],
        "products": [
            {"name": "Notebook", "description": "A5 dotted notebook", "price_cents": 850,
             "stock": 50, "category": "Stationery"},
            {"name": "Fountain Pen", "description": "Steel nib", "price_cents": 3200,
             "stock": 5, "category": "Stationery"},
        ],
    },
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet (existing data is kept)."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed' for demo data.")


def _seed_business(seed_data):
    user = db.session.query(User).filter_by(username=seed_data["user"]["username"]).first()
    if user:
        click.echo(f"SKIP Business '{user.business_name}' already exists (ID: {user.id})")
        return None

    user = auth_service.create_user(password=SEED_PASSWORD, **seed_data["user"])
    click.echo(f"PASS Created business '{user.business_name}' (user: {user.username}, ID: {user.id})")

    contacts = []
    for data in seed_data["contacts"]:
        contact = Contact(business_id=user.id, **data)
        db.session.add(contact)
        contacts.append(contact)
    products = []
    for data in seed_data["products"]:
        product = Product(business_id=user.id, **data)
        db.session.add(product)
        products.append(product)
    db.session.commit()
    click.echo(f"     {len(contacts)} contacts, {len(products)} products")

    customer = next(c for c in contacts if c.type == "customer")
    vendor = next(c for c in contacts if c.type == "vendor")
    first, second = products[0], products[1]

    sale = transaction_service.create_transaction(
        user.id, "sale", customer.id,
        [{"product_id": first.id, "quantity": 2, "unit_price_cents": first.price_cents}],
    )
    purchase = transaction_service.create_transaction(
        user.id, "purchase", vendor.id,
        [{"product_id": second.id, "quantity": 3, "unit_price_cents": second.price_cents // 2}],
    )
    click.echo(f"     sale #{sale.id} ({sale.total_amount_cents} cents), "
               f"purchase #{purchase.id} ({purchase.total_amount_cents} cents)")
    return user


@system_group.command('seed')
@with_appcontext
def seed():
    """
    Create demo data: two businesses, each with a customer, a vendor,
    two products, one sale and one purchase.

    Transactions go through the transaction engine, so stock levels reflect
    them. Idempotent: businesses that already exist are skipped.
    """
    click.echo("START Seeding demo data...")
    db.create_all()

    try:
        for seed_data in SEED_BUSINESSES:
            _seed_business(seed_data)
    except (ValidationError, ConflictError, NotFoundError, InsufficientStockError, PersistenceFailure) as e:
        db.session.rollback()
        raise click.ClickException(f"Seeding failed: {e}")

    click.echo("PASS Seed complete. Log in with:")
    for seed_data in SEED_BUSINESSES:
        click.echo(f"   {seed_data['user']['username']:<10} -> {seed_data['user']['email']:<20} / {SEED_PASSWORD}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Full name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--username', prompt=True, help='Username')
@click.option('--business-name', prompt=True, help='Business name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(name, email, username, business_name, password):
    """Create a business account with the same rules as /api/auth/register."""
    try:
        user = auth_service.register_business({
            "name": name,
            "email": email,
            "username": username,
            "business_name": business_name,
            "password": password,
        })
    except RegistrationError as e:
        for error in e.errors:
            click.echo(f"FAIL {error['field']}: {error['message']}")
        raise click.exceptions.Exit(1)
    except ConflictError as e:
        click.echo(f"FAIL {e}")
        raise click.exceptions.Exit(1)

    click.echo(f"PASS Created user: {user.username} ({user.email}) for '{user.business_name}' (ID: {user.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all business accounts."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Business'}")
    click.echo("=" * 90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {user.business_name}")

    click.echo("=" * 90 + "\n")


@click.group('sessions')
def sessions_group():
    """Session maintenance commands."""


@sessions_group.command('cleanup')
@click.option('--older-than-days', type=int, default=30, show_default=True,
              help='Only delete sessions created before this many days ago')
@with_appcontext
def cleanup_sessions(older_than_days):
    """Delete expired or revoked sessions."""
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"PASS Deleted {deleted} session(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
