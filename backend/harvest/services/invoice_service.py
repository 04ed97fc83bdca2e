# Overview: Service-layer operations for invoices; encapsulates business logic and database work.

"""
Invoice Generation Service

WHY: Turn a customer's order into exactly one invoice, consuming any
standing credit the customer has at that moment.

DESIGN PRINCIPLES:
- One invoice per order (unique order_id, checked first and enforced by the DB)
- Prices come from the order-time snapshot, never the live catalog
- Credit consumed = min(balance, subtotal); an invoice never goes negative
- Invoice row + "applied" credit entry commit together or not at all
- Amount paid is always summed from payments, never cached on the invoice
"""

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..errors import BillingError, ConflictError, NotFoundError
from ..models import Credit, CreditType, Customer, Invoice, InvoiceStatus, Order, Payment
from harvest.time_utils import utcnow
from .concurrency import run_with_retry
from .credit_service import append_credit, calculate_credit_to_apply, lock_customer


# =============================================================================
# STATUS RULES
# =============================================================================

def resolve_status(total_paid_cents: int, total_cents: int) -> InvoiceStatus:
    """
    Invoice status from money reality.

    - PAID: total_paid >= total (includes a zero total)
    - PARTIAL: 0 < total_paid < total
    - UNPAID: nothing paid yet
    """
    if total_paid_cents >= total_cents:
        return InvoiceStatus.PAID
    if total_paid_cents > 0:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.UNPAID


def get_amount_paid(invoice_id: int) -> int:
    """Sum of payments for an invoice, recomputed from the payments table."""
    total = db.session.query(
        func.coalesce(func.sum(Payment.amount_cents), 0)
    ).filter(Payment.invoice_id == invoice_id).scalar() or 0
    return int(total)


# =============================================================================
# GENERATION
# =============================================================================

def generate_invoice(order_id: int) -> Invoice:
    """
    Generate the invoice for an order.

    Args:
        order_id: Order to bill

    Returns:
        Invoice record (committed)

    Raises:
        ConflictError: An invoice already exists for this order
        NotFoundError: Order does not exist
    """
    def _op():
        existing = _existing_invoice(order_id)
        if existing:
            raise ConflictError("Invoice already exists for this order", details={"invoice_id": existing.id})

        order = db.session.query(Order).filter_by(id=order_id).first()
        if not order:
            raise NotFoundError("Order not found")

        # Serialize credit consumption per customer
        lock_customer(order.customer_id)

        subtotal = sum(item.line_total_cents for item in order.items)
        credit_to_apply = calculate_credit_to_apply(order.customer_id, subtotal)
        total = subtotal - credit_to_apply

        invoice = Invoice(
            order_id=order.id,
            customer_id=order.customer_id,
            subtotal_cents=subtotal,
            credit_applied_cents=credit_to_apply,
            total_cents=total,
            status=resolve_status(0, total),
            due_date=utcnow() + timedelta(days=current_app.config["INVOICE_DUE_DAYS"]),
        )
        db.session.add(invoice)
        try:
            db.session.flush()  # Get invoice ID; unique order_id catches a concurrent generator
        except IntegrityError as exc:
            raise ConflictError("Invoice already exists for this order") from exc

        if credit_to_apply > 0:
            append_credit(
                customer_id=order.customer_id,
                amount_cents=-credit_to_apply,
                reason=f"Applied to invoice {invoice.id}",
                credit_type=CreditType.APPLIED,
                invoice_id=invoice.id,
            )

        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info(
        "Generated invoice %s for order %s (subtotal=%s credit_applied=%s total=%s)",
        invoice.id, invoice.order_id, invoice.subtotal_cents,
        invoice.credit_applied_cents, invoice.total_cents,
    )
    return invoice


def _existing_invoice(order_id: int) -> Invoice | None:
    return db.session.query(Invoice).filter_by(order_id=order_id).first()


def generate_bulk_invoices(order_ids: list[int]) -> dict:
    """
    Generate invoices for many orders; one failure never aborts the batch.

    Returns:
        {
            "success_count": int,
            "failed_count": int,
            "invoice_ids": [int, ...],
            "errors": [{"order_id": ..., "error": "..."}],
        }
    """
    results = {
        "success_count": 0,
        "failed_count": 0,
        "invoice_ids": [],
        "errors": [],
    }

    for order_id in order_ids:
        try:
            invoice = generate_invoice(order_id)
        except BillingError as exc:
            message = str(exc)
        except SQLAlchemyError:
            current_app.logger.exception("Failed to generate invoice for order %s", order_id)
            message = "Failed to generate invoice"
        else:
            results["success_count"] += 1
            results["invoice_ids"].append(invoice.id)
            continue

        current_app.logger.warning("Bulk invoice generation skipped order %s: %s", order_id, message)
        results["failed_count"] += 1
        results["errors"].append({"order_id": order_id, "error": message})

    return results


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice(invoice_id: int) -> Invoice | None:
    return db.session.get(Invoice, invoice_id)


def list_invoices(
    *,
    customer_id: int | None = None,
    customer_name: str | None = None,
    status: InvoiceStatus | str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Invoice]:
    """
    Invoices matching the filters, newest first.

    customer_name is a case-insensitive partial match; start/end bound
    created_at inclusively.
    """
    query = db.session.query(Invoice)

    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)
    if status is not None:
        query = query.filter(Invoice.status == InvoiceStatus(status))
    if start is not None:
        query = query.filter(Invoice.created_at >= start)
    if end is not None:
        query = query.filter(Invoice.created_at <= end)
    if customer_name:
        query = query.join(Customer, Customer.id == Invoice.customer_id).filter(
            Customer.name.ilike(f"%{customer_name}%")
        )

    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def get_customer_invoices(customer_id: int) -> list[Invoice]:
    return list_invoices(customer_id=customer_id)


def invoice_balance_due(invoice_id: int) -> int:
    """Amount still owed on an invoice, floored at zero."""
    invoice = get_invoice(invoice_id)
    if not invoice:
        raise NotFoundError("Invoice not found")
    return max(0, invoice.total_cents - get_amount_paid(invoice_id))


def get_invoice_credits(invoice_id: int) -> list[Credit]:
    """Ledger entries produced or consumed by this invoice, oldest first."""
    return db.session.query(Credit).filter_by(
        invoice_id=invoice_id
    ).order_by(Credit.created_at, Credit.id).all()
