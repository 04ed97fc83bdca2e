# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Recording Service

WHY: Apply money received (cash, Yoco card, EFT) to an invoice and keep
the invoice status and the customer's credit in step with it.

DESIGN PRINCIPLES:
- Payments are separate from invoices (many-to-one relationship)
- Partial payments allowed; status moves UNPAID -> PARTIAL -> PAID
- Amount paid is re-summed from payments after every insert (no running counter)
- Overpayment becomes standing credit in the ledger, never "change"
- Gateway charge happens before any write; a decline aborts everything
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..errors import ConflictError, GatewayError, NotFoundError, ValidationError
from ..models import CreditType, Invoice, Payment, PaymentMethod
from ..validation import coerce_cents, coerce_datetime
from harvest.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .credit_service import append_credit, lock_customer
from .invoice_service import get_amount_paid, resolve_status
from .yoco_service import YocoClient, get_gateway


VALID_METHODS = [m.value for m in PaymentMethod]


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def record_payment(
    invoice_id: int,
    customer_id: int,
    amount_cents: int,
    method: str,
    payment_date: datetime | str | None = None,
    notes: str | None = None,
    gateway_token: str | None = None,
    gateway: YocoClient | None = None,
) -> Payment:
    """
    Record a payment against an invoice.

    Args:
        invoice_id: Invoice being paid
        customer_id: Paying customer (must own the invoice)
        amount_cents: Amount received (in cents, > 0)
        method: cash, yoco, eft
        payment_date: When the money was received (default: now)
        notes: Free-text notes (optional)
        gateway_token: Yoco card token; when given with method=yoco the card
            is charged before anything is recorded
        gateway: Gateway client override (default: configured Yoco client)

    Returns:
        Payment record (committed); use to_dict(include_related=True) for
        the invoice and customer summaries

    Raises:
        NotFoundError: Invoice not found
        ConflictError: Customer does not own the invoice
        ValidationError: Amount not positive or method invalid
        GatewayError: Yoco declined the charge
    """
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError("Invoice not found")

    if invoice.customer_id != customer_id:
        raise ConflictError("Customer does not match invoice")

    amount_cents = coerce_cents(amount_cents, "amount_cents")
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be positive")

    if method not in VALID_METHODS:
        raise ValidationError(f"Invalid payment method. Must be one of: {', '.join(VALID_METHODS)}")
    method = PaymentMethod(method)

    payment_date = coerce_datetime(payment_date, "payment_date") if payment_date is not None else utcnow()

    # Card gateway first: nothing is persisted unless the charge succeeds
    if method == PaymentMethod.YOCO and gateway_token:
        gateway = gateway or get_gateway()
        result = gateway.charge(gateway_token, amount_cents)
        if not result.success:
            current_app.logger.warning(
                "Yoco charge declined for invoice %s: %s", invoice_id, result.error_message
            )
            raise GatewayError(f"Yoco Payment Failed: {result.error_message}")
        notes = f"{notes or ''} (Yoco Ref: {result.charge_id})".strip()

    def _op():
        # Lock invoice for status update
        locked = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if not locked:
            raise NotFoundError("Invoice not found")

        paid_before = get_amount_paid(invoice_id)

        payment = Payment(
            invoice_id=invoice_id,
            customer_id=customer_id,
            amount_cents=amount_cents,
            method=method,
            payment_date=payment_date,
            notes=notes,
        )
        db.session.add(payment)
        db.session.flush()  # Get payment ID and make it visible to the sum below

        total_paid = get_amount_paid(invoice_id)
        new_status = resolve_status(total_paid, locked.total_cents)

        # Only the excess this payment adds is new credit; earlier excess
        # was already credited by the payment that created it
        overpayment = _excess(total_paid, locked.total_cents) - _excess(paid_before, locked.total_cents)
        if overpayment > 0:
            append_credit(
                customer_id=customer_id,
                amount_cents=overpayment,
                reason=f"Overpayment on invoice {invoice_id}",
                credit_type=CreditType.OVERPAYMENT,
                invoice_id=invoice_id,
            )

        if method == PaymentMethod.EFT:
            _award_loyalty_points(customer_id)

        locked.status = new_status
        return payment

    payment = run_with_retry(_op)
    current_app.logger.info(
        "Recorded %s payment %s of %s cents on invoice %s (status=%s)",
        payment.method.value, payment.id, payment.amount_cents,
        invoice_id, payment.invoice.status.value,
    )
    return payment


def _excess(total_paid_cents: int, total_cents: int) -> int:
    return max(0, total_paid_cents - total_cents)


def _award_loyalty_points(customer_id: int) -> None:
    """EFT reward: fixed points per payment, inside the payment's transaction."""
    customer = lock_customer(customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    customer.loyalty_points = (customer.loyalty_points or 0) + current_app.config["EFT_LOYALTY_POINTS"]


# =============================================================================
# QUERIES
# =============================================================================

def get_payment(payment_id: int) -> Payment | None:
    return db.session.get(Payment, payment_id)


def get_customer_payments(customer_id: int) -> list[Payment]:
    """All payments by a customer, newest payment date first."""
    return db.session.query(Payment).filter_by(
        customer_id=customer_id
    ).order_by(Payment.payment_date.desc(), Payment.id.desc()).all()


def get_invoice_payments(invoice_id: int) -> list[Payment]:
    """All payments on an invoice, newest payment date first."""
    return db.session.query(Payment).filter_by(
        invoice_id=invoice_id
    ).order_by(Payment.payment_date.desc(), Payment.id.desc()).all()


def get_payment_summary(invoice_id: int) -> dict:
    """
    Get comprehensive payment summary for an invoice.

    Returns:
        - total_cents: Amount the invoice totals to
        - total_paid_cents: Amount paid so far
        - remaining_cents: Amount still owed (never negative)
        - status: unpaid, partial, paid
        - payments: List of payment records
    """
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError("Invoice not found")

    total_paid = get_amount_paid(invoice_id)

    return {
        "invoice_id": invoice.id,
        "total_cents": invoice.total_cents,
        "total_paid_cents": total_paid,
        "remaining_cents": max(0, invoice.total_cents - total_paid),
        "status": invoice.status.value,
        "payments": [p.to_dict() for p in get_invoice_payments(invoice_id)],
    }
