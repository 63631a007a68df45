# Overview: Flask CLI command groups for bootstrap and stock ledger inspection.

# backend/bazaarlink/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migration-managed databases).
# - python -m flask system seed-demo
#   Create a demo supplier, a demo vendor and a few products.
#
# Stock ledger inspection:
# - python -m flask stock low --seller-id 1
#   Products at or below their low-stock threshold.
# - python -m flask stock history 3 [--since 2026-01-01T00:00:00Z]
#   Chronological stock history for one product.
# - python -m flask stock verify [--product-id 3]
#   Check ledger invariants for one product or every product.
# - python -m flask stock predict --seller-id 1
#   Restock suggestions from cumulative order demand.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, User
from .models.accounts import ROLE_SUPPLIER, ROLE_VENDOR
from .services import catalog_service
from .services import restock_service
from .services import stock_ledger_service
from .services.auth_service import register_user, PasswordValidationError, RegistrationError
from .services.stock_ledger_service import ProductNotFoundError
from .time_utils import parse_iso_datetime, to_utc_z


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Create demo accounts and products.

    Users (password "Password123!"):
    - supplier: phone 9000000001
    - vendor:   phone 9000000002
    """
    click.echo("START Seeding demo data...")
    default_password = "Password123!"

    demo_users = [
        ("Demo Supplier", "9000000001", "Pune", ROLE_SUPPLIER),
        ("Demo Vendor", "9000000002", "Pune", ROLE_VENDOR),
    ]

    for name, phone, location, role in demo_users:
        try:
            user = register_user(
                name=name,
                phone=phone,
                location=location,
                password=default_password,
                role=role,
            )
            click.echo(f"PASS Created {role}: {name} (phone {phone}, ID: {user.id})")
        except (RegistrationError, PasswordValidationError) as e:
            click.echo(f"WARN  Skipping {phone}: {e}")

    supplier = db.session.query(User).filter_by(phone="9000000001").first()
    if supplier is None or supplier.role != ROLE_SUPPLIER:
        click.echo("FAIL Demo supplier is missing; products not created")
        return

    if catalog_service.list_seller_products(supplier.id, include_inactive=True):
        click.echo("WARN  Demo supplier already has products, skipping...")
        return

    demo_products = [
        {"name": "Onions", "unit": "kg", "price_cents": 3000, "quantity_on_hand": 120},
        {"name": "Tomatoes", "unit": "kg", "price_cents": 2500, "quantity_on_hand": 8},
        {"name": "Cooking Oil", "unit": "litre", "price_cents": 14500, "quantity_on_hand": 40},
    ]
    for patch in demo_products:
        product = catalog_service.create_product(seller_id=supplier.id, patch=patch)
        click.echo(f"PASS Created product: {product.name} ({product.quantity_on_hand} {product.unit})")

    click.echo("DONE Demo data ready")


@click.group('stock')
def stock_group():
    """Stock ledger inspection commands."""


@stock_group.command('low')
@click.option('--seller-id', type=int, required=True, help='Supplier user ID')
@with_appcontext
def low_stock(seller_id):
    """List a supplier's products at or below their threshold."""
    products = stock_ledger_service.get_low_stock_products(seller_id)
    if not products:
        click.echo("No low-stock products")
        return
    for p in products:
        click.echo(
            f"{p.id:>5}  {p.name:<30} on_hand={p.quantity_on_hand:<6} threshold={p.low_stock_threshold}"
        )


@stock_group.command('history')
@click.argument('product_id', type=int)
@click.option('--since', default=None, help='ISO-8601 timestamp (inclusive)')
@with_appcontext
def stock_history(product_id, since):
    """Print a product's stock history in order."""
    try:
        since_dt = parse_iso_datetime(since)
    except ValueError:
        raise click.BadParameter("must be an ISO-8601 timestamp", param_hint="--since")

    try:
        entries = stock_ledger_service.get_stock_history(product_id, since=since_dt)
    except ProductNotFoundError as e:
        raise click.ClickException(str(e))

    for entry in entries:
        order = f" order={entry.order_id}" if entry.order_id else ""
        click.echo(
            f"{to_utc_z(entry.occurred_at)}  {entry.action:<10} {entry.quantity_delta:+d}  "
            f"{entry.previous_quantity} -> {entry.new_quantity}{order}"
        )
    click.echo(f"{len(entries)} entries")


@stock_group.command('verify')
@click.option('--product-id', type=int, default=None, help='Check a single product')
@with_appcontext
def verify(product_id):
    """Check ledger invariants; exits non-zero when any product fails."""
    if product_id is not None:
        product_ids = [product_id]
    else:
        product_ids = [pid for (pid,) in db.session.query(Product.id).order_by(Product.id.asc()).all()]

    failures = 0
    for pid in product_ids:
        try:
            result = stock_ledger_service.verify_ledger(pid)
        except ProductNotFoundError as e:
            raise click.ClickException(str(e))
        if result["consistent"]:
            click.echo(f"PASS product {pid}")
            continue
        failures += 1
        click.echo(f"FAIL product {pid}")
        for problem in result["problems"]:
            click.echo(f"     {problem}")

    click.echo(f"Checked {len(product_ids)} products, {failures} inconsistent")
    if failures:
        raise SystemExit(1)


@stock_group.command('predict')
@click.option('--seller-id', type=int, required=True, help='Supplier user ID')
@with_appcontext
def predict(seller_id):
    """Show restock suggestions for a supplier."""
    minimum = current_app.config.get("RESTOCK_MINIMUM_SUGGESTION", restock_service.MIN_RESTOCK_SUGGESTION)
    result = restock_service.predict_restock(seller_id, minimum_suggestion=minimum)
    if "message" in result:
        click.echo(result["message"])
        return
    for s in result["suggestions"]:
        click.echo(
            f"{s['product_id']:>5}  {s['name']:<30} stock={s['current_stock']:<6} "
            f"ordered={s['ordered_quantity']:<6} restock={s['suggested_restock']} {s['unit']}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
