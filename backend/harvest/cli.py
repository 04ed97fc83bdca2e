# Overview: Flask CLI command groups for schema bootstrap and billing operations.

# backend/harvest/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent; prefer `flask db upgrade` in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Billing operations:
# - python -m flask billing generate-invoice 42
#   Generate the invoice for order 42.
# - python -m flask billing generate-invoices 42 43 44
#   Generate invoices for several orders; failures are reported per order.
# - python -m flask billing payment-summary 7
#   Show total, paid, remaining and status for invoice 7.
# - python -m flask billing credit-balance 3 [--history]
#   Show customer 3's credit balance (and ledger entries).
# - python -m flask billing stats [--customer-id 3] [--start 2026-01-01] [--end 2026-01-31]
#   Dashboard invoice statistics.

import json

import click
from flask.cli import with_appcontext

from .errors import BillingError
from .extensions import db
from .services import credit_service, invoice_service, payment_service, reporting_service
from .time_utils import parse_iso_datetime
from .validation import format_rands


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
    from . import models  # noqa: F401
    db.create_all()
    click.echo("PASS Schema ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the credit ledger!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('billing')
def billing_group():
    """Invoice, payment and credit operations."""


@billing_group.command('generate-invoice')
@click.argument('order_id', type=int)
@with_appcontext
def generate_invoice(order_id):
    """Generate the invoice for ORDER_ID."""
    try:
        invoice = invoice_service.generate_invoice(order_id)
    except BillingError as e:
        raise click.ClickException(f"{e.code}: {e}")

    click.echo(
        f"PASS Invoice {invoice.id} for order {order_id}: "
        f"subtotal {format_rands(invoice.subtotal_cents)}, "
        f"credit {format_rands(invoice.credit_applied_cents)}, "
        f"total {format_rands(invoice.total_cents)} [{invoice.status.value}]"
    )


@billing_group.command('generate-invoices')
@click.argument('order_ids', type=int, nargs=-1, required=True)
@with_appcontext
def generate_invoices(order_ids):
    """Generate invoices for several ORDER_IDS."""
    results = invoice_service.generate_bulk_invoices(list(order_ids))

    click.echo(f"PASS Generated {results['success_count']} invoice(s)")
    for error in results["errors"]:
        click.echo(f"FAIL Order {error['order_id']}: {error['error']}")
    if results["failed_count"]:
        raise SystemExit(1)


@billing_group.command('payment-summary')
@click.argument('invoice_id', type=int)
@with_appcontext
def payment_summary(invoice_id):
    """Show payment status for INVOICE_ID."""
    try:
        summary = payment_service.get_payment_summary(invoice_id)
    except BillingError as e:
        raise click.ClickException(f"{e.code}: {e}")

    click.echo(f"Invoice {invoice_id} [{summary['status']}]")
    click.echo(f"  Total:     {format_rands(summary['total_cents'])}")
    click.echo(f"  Paid:      {format_rands(summary['total_paid_cents'])}")
    click.echo(f"  Remaining: {format_rands(summary['remaining_cents'])}")
    for p in summary["payments"]:
        click.echo(f"  - #{p['id']} {p['method']:<5} {format_rands(p['amount_cents'])} on {p['payment_date']}")


@billing_group.command('credit-balance')
@click.argument('customer_id', type=int)
@click.option('--history', is_flag=True, help='List ledger entries too')
@with_appcontext
def credit_balance(customer_id, history):
    """Show the credit balance for CUSTOMER_ID."""
    balance = credit_service.get_credit_balance(customer_id)
    click.echo(f"Customer {customer_id} credit balance: {format_rands(balance)}")

    if history:
        for entry in credit_service.get_customer_credits(customer_id):
            click.echo(
                f"  {entry.created_at}  {entry.type.value:<14} "
                f"{format_rands(entry.amount_cents):>12}  {entry.reason}"
            )


@billing_group.command('stats')
@click.option('--customer-id', type=int, default=None, help='Limit to one customer')
@click.option('--start', default=None, help='ISO-8601 lower bound on invoice creation')
@click.option('--end', default=None, help='ISO-8601 upper bound on invoice creation')
@with_appcontext
def stats(customer_id, start, end):
    """Dashboard invoice statistics (JSON)."""
    try:
        start_dt = parse_iso_datetime(start)
        end_dt = parse_iso_datetime(end)
    except ValueError:
        raise click.BadParameter("start/end must be ISO-8601 datetimes")

    result = reporting_service.calculate_invoice_stats(
        customer_id=customer_id,
        start=start_dt,
        end=end_dt,
    )
    click.echo(json.dumps(result, indent=2))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(billing_group)
