# Overview: Flask CLI command groups for bootstrap, stock and installment maintenance.

# backend/salesdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stock ledger:
# - python -m flask inventory register-product --stock-code SKU-A --name "Widget" --price 10.00 --vat 18 --min-stock 5 --opening 20
#   Create a stock entry; the opening quantity is booked as an adjustment movement.
# - python -m flask inventory adjust SKU-A -3 --note "Damaged in transit"
#   Signed manual adjustment (never drives stock negative).
# - python -m flask inventory low-stock
#   List active low stock alerts.
#
# Installments (schedule externally, daily):
# - python -m flask installments sweep-overdue [--as-of 2026-10-17]
#   Mark pending installments past their due date as overdue across all open installment sales.
#   Example crontab: 15 0 * * * cd /srv/salesdesk/backend && python -m flask installments sweep-overdue

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import SalesDeskError
from .services import inventory_service, installment_service
from .validation import money_to_cents, parse_as_of, percent_to_bps


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    from . import models  # noqa: F401

    db.create_all()
    click.echo("OK  Tables created.")


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

    click.echo("OK  Database reset.")


@click.group('inventory')
def inventory_group():
    """Stock ledger commands."""


@inventory_group.command('register-product')
@click.option('--stock-code', required=True)
@click.option('--name', required=True)
@click.option('--price', default=None, help='Sale price, e.g. 10.00')
@click.option('--vat', default='0', show_default=True, help='VAT rate in percent')
@click.option('--min-stock', type=int, default=0, show_default=True)
@click.option('--opening', type=int, default=0, show_default=True, help='Opening quantity')
@with_appcontext
def register_product_cli(stock_code, name, price, vat, min_stock, opening):
    """Create a stock entry."""
    try:
        product = inventory_service.register_product(
            stock_code=stock_code,
            name=name,
            sale_price_cents=money_to_cents(price, "price") if price is not None else None,
            vat_rate_bps=percent_to_bps(vat, "vat"),
            min_stock_level=min_stock,
            opening_quantity=opening,
        )
    except SalesDeskError as e:
        raise click.ClickException(e.message)

    click.echo(f"OK  {product.stock_code} registered with {product.quantity_on_hand} on hand.")


@inventory_group.command('adjust')
@click.argument('stock_code')
@click.argument('quantity', type=int)
@click.option('--note', default=None)
@with_appcontext
def adjust_cli(stock_code, quantity, note):
    """Apply a signed stock adjustment."""
    try:
        product = inventory_service.adjust_stock(stock_code, quantity, note)
    except SalesDeskError as e:
        raise click.ClickException(e.message)

    click.echo(f"OK  {product.stock_code}: {product.quantity_on_hand} on hand.")


@inventory_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    """List active low stock alerts."""
    alerts = inventory_service.list_low_stock_alerts()
    if not alerts:
        click.echo("No active low stock alerts.")
        return

    click.echo(f"{'STOCK CODE':<20} {'AT ALERT':>9} {'MINIMUM':>8}  SINCE")
    for alert in alerts:
        since = alert.created_at.strftime("%Y-%m-%d %H:%M") if alert.created_at else "-"
        click.echo(
            f"{alert.stock_code:<20} {alert.current_stock_at_alert:>9} "
            f"{alert.min_stock_level_at_alert:>8}  {since}"
        )


@click.group('installments')
def installments_group():
    """Installment tracking commands."""


@installments_group.command('sweep-overdue')
@click.option('--as-of', 'as_of', default=None, help='ISO date/datetime; defaults to now (UTC)')
@with_appcontext
def sweep_overdue_cli(as_of):
    """
    Mark overdue installments across all open installment sales.

    Intended cadence: daily, from cron or any external scheduler.
    """
    try:
        results = installment_service.sweep_overdue_installments(parse_as_of(as_of))
    except SalesDeskError as e:
        raise click.ClickException(e.message)

    if not results:
        click.echo("No installments became overdue.")
        return

    for sale_id, changed in results.items():
        click.echo(f"Sale {sale_id}: {changed} installment(s) now overdue")
    click.echo(f"OK  {sum(results.values())} installment(s) across {len(results)} sale(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(installments_group)
