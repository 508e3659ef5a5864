# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/pos_ledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalogue bootstrap:
# - python -m flask outlets create --code BSD --name "Cabang BSD"
# - python -m flask outlets list
# - python -m flask products create --sku KOPI-01 --name "Kopi Susu" --price 18000 --min-stock 5
# - python -m flask products list
#
# Inventory:
# - python -m flask inventory init --outlet-id 1 --quantity 50
#   Post an INITIAL movement for every product with no stock record at the outlet.
#
# Ledger checks:
# - python -m flask ledger verify [--outlet-id 1]
#   Compare every stock balance with the sum of its movements.

from decimal import Decimal, InvalidOperation

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Outlet, Product, InventoryRecord
from .services import inventory_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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


@click.group('outlets')
def outlets_group():
    """Outlet management commands."""


@outlets_group.command('create')
@click.option('--code', required=True, help='Short code (unique)')
@click.option('--name', required=True, help='Outlet name')
@click.option('--address', default=None, help='Street address')
@with_appcontext
def create_outlet_cli(code, name, address):
    existing = db.session.query(Outlet).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Outlet with code '{code}' already exists")
        return

    outlet = Outlet(code=code, name=name, address=address, is_active=True)
    db.session.add(outlet)
    db.session.commit()
    click.echo(f"PASS Created outlet: {outlet.name} (ID: {outlet.id}, Code: {outlet.code})")


@outlets_group.command('list')
@with_appcontext
def list_outlets():
    outlets = db.session.query(Outlet).order_by(Outlet.id).all()
    if not outlets:
        click.echo("No outlets found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Code':<10} {'Name':<30} {'Active'}")
    click.echo("="*60)
    for outlet in outlets:
        active_str = "Yes" if outlet.is_active else "No"
        click.echo(f"{outlet.id:<5} {outlet.code:<10} {outlet.name:<30} {active_str}")
    click.echo("="*60 + "\n")


@click.group('products')
def products_group():
    """Catalogue bootstrap commands."""


@products_group.command('create')
@click.option('--sku', required=True, help='SKU (unique)')
@click.option('--name', required=True, help='Product name')
@click.option('--price', required=True, help='Unit price, e.g. 18000 or 18000.50')
@click.option('--min-stock', type=int, default=0, help='Low-stock threshold (0 disables alerts)')
@click.option('--not-taxable', is_flag=True, help='Exclude from VAT')
@with_appcontext
def create_product_cli(sku, name, price, min_stock, not_taxable):
    try:
        price = Decimal(price).quantize(Decimal("0.01"))
    except InvalidOperation:
        raise click.BadParameter("price must be a number", param_hint="--price")
    if price < 0 or min_stock < 0:
        raise click.BadParameter("price and min-stock may not be negative")

    if db.session.query(Product).filter_by(sku=sku).first():
        click.echo(f"FAIL Product with SKU '{sku}' already exists")
        return

    product = Product(
        sku=sku,
        name=name,
        price=price,
        min_stock=min_stock,
        is_taxable=not not_taxable,
        is_active=True,
    )
    db.session.add(product)
    db.session.commit()
    click.echo(f"PASS Created product: {product.name} (ID: {product.id}, SKU: {product.sku})")


@products_group.command('list')
@with_appcontext
def list_products():
    products = db.session.query(Product).order_by(Product.id).all()
    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'SKU':<15} {'Name':<30} {'Price':>14} {'Min':>6}")
    click.echo("="*80)
    for product in products:
        click.echo(
            f"{product.id:<5} {product.sku:<15} {product.name:<30} {product.price:>14} {product.min_stock:>6}"
        )
    click.echo("="*80 + "\n")


@click.group('inventory')
def inventory_group():
    """Inventory bootstrap commands."""


@inventory_group.command('init')
@click.option('--outlet-id', type=int, required=True, help='Outlet ID')
@click.option('--quantity', type=int, default=0, help='Opening quantity per product')
@with_appcontext
def init_inventory(outlet_id, quantity):
    """Post opening stock for products that have no record at the outlet yet."""
    if db.session.get(Outlet, outlet_id) is None:
        click.echo(f"FAIL Outlet {outlet_id} not found")
        return
    if quantity <= 0:
        click.echo("FAIL --quantity must be positive")
        return

    stocked = {
        row.product_id
        for row in db.session.query(InventoryRecord.product_id).filter_by(outlet_id=outlet_id).all()
    }
    created = 0
    for product in db.session.query(Product).filter_by(is_active=True).order_by(Product.id).all():
        if product.id in stocked:
            continue
        inventory_service.record_stock_adjustment(
            db.session,
            product_id=product.id,
            outlet_id=outlet_id,
            delta=quantity,
            movement_type=inventory_service.MOVEMENT_INITIAL,
            note="Opening stock",
        )
        created += 1

    click.echo(f"PASS Initialized {created} inventory record(s) at outlet {outlet_id}")


@click.group('ledger')
def ledger_group():
    """Ledger consistency checks."""


@ledger_group.command('verify')
@click.option('--outlet-id', type=int, default=None, help='Limit the check to one outlet')
@with_appcontext
def verify_ledger(outlet_id):
    mismatches = inventory_service.verify_stock_conservation(db.session, outlet_id)
    if not mismatches:
        click.echo("PASS Stock balances match their movement logs")
        return

    for row in mismatches:
        click.echo(
            f"FAIL product={row['product_id']} outlet={row['outlet_id']} "
            f"quantity={row['quantity']} movements={row['movement_total']}"
        )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(outlets_group)
    app.cli.add_command(products_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(ledger_group)
