# Overview: Flask CLI command groups for bootstrap, inspection, and stock maintenance.

# backend/posengine/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app posengine <group> <command> [options]
#
# System bootstrap:
# - python -m flask --app posengine system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask --app posengine system seed --store-code TST --currency USD
#   Idempotent: create a store, a currency it accepts and a Cash payment mode.
#
# Transaction inspection:
# - python -m flask --app posengine transactions list --store-id 1 --status COMPLETED --limit 20
# - python -m flask --app posengine transactions show TXN-TST-20260101-0001
# - python -m flask --app posengine transactions history TXN-TST-20260101-0001
#
# Inventory:
# - python -m flask --app posengine inventory logs --store-id 1 --product-id 3
# - python -m flask --app posengine inventory adjust --store-id 1 --product-id 3 --delta -2 --code LI --actor 1 --notes "Damaged"
# - python -m flask --app posengine inventory stock --store-id 1 --product-id 3

import click
from flask.cli import with_appcontext

from .exceptions import TransactionError
from .extensions import db
from .models import Currency, InventoryActivityCodes, PaymentMode, Store, StoreCurrency, TransactionStatus
from .services import inventory_service, transaction_service, version_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


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

    click.echo("PASS Database reset complete. Run 'flask system seed' to add a store.")


@system_group.command('seed')
@click.option('--store-code', default='TST', help='Store code used in transaction numbers')
@click.option('--store-name', default='Test Store', help='Store name')
@click.option('--currency', 'currency_code', default='USD', help='ISO currency code')
@click.option('--tax', 'tax_percentage', default='0', help='Store tax percentage')
@click.option('--tax-inclusive', is_flag=True, help='Prices include tax')
@with_appcontext
def seed(store_code, store_name, currency_code, tax_percentage, tax_inclusive):
    """Create a store, a currency it accepts and a Cash payment mode (idempotent)."""
    currency = db.session.query(Currency).filter_by(code=currency_code).first()
    if currency is None:
        currency = Currency(code=currency_code, name=currency_code, decimal_places=2, is_active=True)
        db.session.add(currency)
        click.echo(f"PASS Created currency {currency_code}")

    store = db.session.query(Store).filter_by(code=store_code).first()
    if store is None:
        store = Store(
            code=store_code,
            name=store_name,
            tax_percentage=tax_percentage,
            tax_inclusive=tax_inclusive,
            is_active=True,
        )
        db.session.add(store)
        click.echo(f"PASS Created store {store_code}")
    db.session.flush()

    if db.session.query(StoreCurrency).filter_by(store_id=store.id, currency_id=currency.id).first() is None:
        db.session.add(StoreCurrency(store_id=store.id, currency_id=currency.id))

    if db.session.query(PaymentMode).filter_by(name="Cash").first() is None:
        db.session.add(PaymentMode(name="Cash", is_active=True))
        click.echo("PASS Created payment mode Cash")

    db.session.commit()
    click.echo(f"   Store ID: {store.id}  Currency ID: {currency.id}")


@click.group('transactions')
def transactions_group():
    """POS transaction inspection commands."""


@transactions_group.command('list')
@click.option('--store-id', type=int, help='Filter by store ID')
@click.option('--status', type=click.Choice([status.value for status in TransactionStatus]), help='Filter by status')
@click.option('--search', help='Transaction number or customer name fragment')
@click.option('--limit', type=int, default=20, help='Max transactions to show')
@with_appcontext
def list_transactions_cli(store_id, status, search, limit):
    """
    List recent transactions.

    Example:
        flask transactions list --store-id 1 --status COMPLETED
    """
    txns = transaction_service.list_transactions(store_id=store_id, status=status, search=search, limit=limit)

    if not txns:
        click.echo("No transactions found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<6} {'Number':<28} {'Status':<11} {'Items':<6} {'Total':>12} {'Paid':>12} {'Refunded':>12}")
    click.echo("="*100)

    for txn in txns:
        click.echo(
            f"{txn.id:<6} {txn.transaction_number:<28} {txn.status.value:<11} {len(txn.active_items):<6} "
            f"{txn.total:>12.2f} {txn.amount_paid:>12.2f} {txn.refund_amount:>12.2f}"
        )

    click.echo("="*100 + "\n")


@transactions_group.command('show')
@click.argument('transaction_number')
@with_appcontext
def show_transaction_cli(transaction_number):
    """Print one transaction with its lines and payments."""
    try:
        txn = transaction_service.get_transaction_by_number(transaction_number)
    except TransactionError as e:
        click.echo(f"FAIL Error: {e.message}")
        raise SystemExit(1)

    click.echo(f"\n{txn.transaction_number}  [{txn.status.value}]  store={txn.store_id}  employee={txn.employee_id}")
    if txn.customer_id:
        click.echo(f"Customer: {txn.customer_id}")
    click.echo("-"*80)
    for item in txn.items:
        flag = " (refunded)" if item.is_refunded else ""
        click.echo(
            f"  {item.display_name:<36} {item.quantity:>4} x {item.unit_price:>10.2f}"
            f"  -{item.line_discount:>9.2f}  {item.line_total:>10.2f}{flag}"
        )
    click.echo("-"*80)
    for field in ("subtotal", "offer_discount", "bundle_discount", "minimum_spend_discount",
                  "customer_discount", "manual_discount", "tax_amount", "total",
                  "amount_paid", "balance_due", "change_amount", "refund_amount"):
        click.echo(f"  {field:<24} {getattr(txn, field):>12.2f}")
    for payment in txn.payments:
        click.echo(f"  #{payment.row_number} {payment.payment_mode_name:<20} {payment.amount:>12.2f}")
    click.echo("")


@transactions_group.command('history')
@click.argument('transaction_number')
@with_appcontext
def history_cli(transaction_number):
    """Print the version history of a transaction."""
    try:
        txn = transaction_service.get_transaction_by_number(transaction_number)
    except TransactionError as e:
        click.echo(f"FAIL Error: {e.message}")
        raise SystemExit(1)

    versions = version_service.get_versions(txn.id)
    click.echo("\n" + "="*100)
    click.echo(f"{'Ver':<5} {'Change':<18} {'By':<6} {'Total':>12}  {'At':<22} Summary")
    click.echo("="*100)
    for version in versions:
        total = version.snapshot_totals.get("total", "0")
        at = version.created_at.strftime("%Y-%m-%d %H:%M:%S") if version.created_at else "-"
        click.echo(
            f"{version.version_number:<5} {version.change_type.value:<18} {version.changed_by:<6} "
            f"{total:>12}  {at:<22} {version.change_summary or ''}"
        )
    click.echo("="*100 + "\n")


@click.group('inventory')
def inventory_group():
    """Stock level and inventory log commands."""


@inventory_group.command('logs')
@click.option('--store-id', type=int, help='Filter by store ID')
@click.option('--product-id', type=int, help='Filter by product ID')
@click.option('--code', 'activity_code', type=click.Choice(sorted(InventoryActivityCodes.all())), help='Activity code')
@click.option('--limit', type=int, default=50, help='Max rows to show')
@with_appcontext
def inventory_logs_cli(store_id, product_id, activity_code, limit):
    """List inventory log rows, newest first."""
    logs = inventory_service.get_inventory_logs(
        store_id=store_id, product_id=product_id, activity_code=activity_code, limit=limit
    )
    if not logs:
        click.echo("No inventory logs found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<6} {'Store':<6} {'Product':<8} {'Code':<5} {'In':>6} {'Out':>6} {'Now':>8}  {'Txn':<6} Notes")
    click.echo("="*100)
    for log in logs:
        click.echo(
            f"{log.id:<6} {log.store_id:<6} {log.product_id:<8} {log.activity_code:<5} "
            f"{log.quantity_in:>6} {log.quantity_out:>6} {log.current_quantity:>8}  "
            f"{log.transaction_id or '-':<6} {log.notes or ''}"
        )
    click.echo("="*100 + "\n")


@inventory_group.command('adjust')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--delta', type=int, required=True, help='Signed quantity change')
@click.option('--code', 'activity_code', type=click.Choice(sorted(InventoryActivityCodes.MANUAL_CODES)), required=True,
              help='Activity code (TA, LI, FI, ST, DO, PO)')
@click.option('--actor', type=int, required=True, help='Acting user ID')
@click.option('--notes', help='Free-text note')
@with_appcontext
def adjust_inventory_cli(store_id, product_id, delta, activity_code, actor, notes):
    """
    Apply a manual stock adjustment.

    Example:
        flask inventory adjust --store-id 1 --product-id 3 --delta -2 --code LI --actor 1
    """
    try:
        log = inventory_service.adjust_inventory(
            product_id=product_id,
            store_id=store_id,
            delta=delta,
            activity_code=activity_code,
            actor=actor,
            notes=notes,
        )
    except TransactionError as e:
        click.echo(f"FAIL Error: {e.message}")
        raise SystemExit(1)

    click.echo(
        f"PASS {InventoryActivityCodes.label(log.activity_code)}: product {product_id} "
        f"at store {store_id} now {log.current_quantity}"
    )


@inventory_group.command('stock')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--product-id', type=int, required=True, help='Product ID')
@with_appcontext
def stock_level_cli(store_id, product_id):
    """Print the current stock level."""
    click.echo(inventory_service.get_stock_level(product_id, store_id))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(transactions_group)
    app.cli.add_command(inventory_group)
