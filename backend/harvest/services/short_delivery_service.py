# Overview: Service-layer operations for short deliveries; encapsulates business logic and database work.

"""
Short Delivery Adjustment Service

WHY: When fewer units are delivered than ordered, the customer is owed
the order-time price of the missing units. That compensation is booked
as credit and, if the order's invoice is still open, immediately used to
shrink the invoice.

LEDGER PATTERN (double entry, both rows kept for audit):
- +X short_delivery  (compensation granted)
- -Y applied         (compensation consumed against the open invoice)

Y is X clamped to what is still owed on the invoice (total - paid). Any
remainder X - Y stays in the ledger as standing credit, so an invoice
total never drops below zero or below what has already been paid.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Credit, CreditType, Invoice, InvoiceStatus, Order
from ..validation import format_rands, normalize_short_items
from .concurrency import lock_for_update, run_with_retry
from .credit_service import append_credit, lock_customer
from .invoice_service import get_amount_paid, resolve_status


def record_short_delivery(order_id: int, customer_id: int, items: list[dict]) -> Credit:
    """
    Record a short delivery and credit the customer.

    Args:
        order_id: Order that was delivered short
        customer_id: Customer who owns the order
        items: [{"product_id": int, "quantity_short": int}, ...]

    Returns:
        The short_delivery (compensation) Credit entry

    Raises:
        NotFoundError: Order not found
        ConflictError: Customer does not own the order
        ValidationError: Product not in order, or short quantity exceeds
            ordered quantity (nothing is written)
    """
    items = normalize_short_items(items)

    def _op():
        order = db.session.query(Order).filter_by(id=order_id).first()
        if not order:
            raise NotFoundError("Order not found")

        if order.customer_id != customer_id:
            raise ConflictError("Customer does not match order")

        order_items = {item.product_id: item for item in order.items}
        missing = [item["product_id"] for item in items if item["product_id"] not in order_items]
        if missing:
            raise ValidationError(
                "Some products are not in the order",
                details={"product_ids": missing},
            )

        total_credit = 0
        breakdown: list[str] = []
        for item in items:
            order_item = order_items[item["product_id"]]
            product_name = order_item.product.name if order_item.product else f"Product {order_item.product_id}"

            if item["quantity_short"] > order_item.quantity:
                raise ValidationError(
                    f"Short quantity for {product_name} exceeds ordered quantity",
                    details={
                        "product_id": order_item.product_id,
                        "ordered_quantity": order_item.quantity,
                        "quantity_short": item["quantity_short"],
                    },
                )

            credit_for_item = order_item.price_at_order_cents * item["quantity_short"]
            total_credit += credit_for_item
            breakdown.append(
                f"{product_name}: {item['quantity_short']} x "
                f"{format_rands(order_item.price_at_order_cents)} = {format_rands(credit_for_item)}"
            )

        # Invoice before customer, same order as record_payment
        invoice = lock_for_update(db.session.query(Invoice).filter_by(order_id=order_id)).first()
        open_invoice = invoice if invoice and invoice.status != InvoiceStatus.PAID else None
        lock_customer(customer_id)

        compensation = append_credit(
            customer_id=customer_id,
            amount_cents=total_credit,
            reason=f"Short delivery on order {order_id}: {'; '.join(breakdown)}",
            credit_type=CreditType.SHORT_DELIVERY,
            invoice_id=open_invoice.id if open_invoice else None,
        )

        if open_invoice:
            _apply_to_invoice(open_invoice, customer_id, total_credit)

        return compensation

    credit = run_with_retry(_op)
    current_app.logger.info(
        "Recorded short delivery on order %s: credit %s cents for customer %s",
        order_id, credit.amount_cents, customer_id,
    )
    return credit


def _apply_to_invoice(invoice: Invoice, customer_id: int, credit_cents: int) -> None:
    """Consume short-delivery credit against an open invoice (caller holds the lock)."""
    total_paid = get_amount_paid(invoice.id)
    outstanding = max(0, invoice.total_cents - total_paid)
    to_apply = min(credit_cents, outstanding)
    if to_apply <= 0:
        return

    append_credit(
        customer_id=customer_id,
        amount_cents=-to_apply,
        reason=f"Applied to invoice {invoice.id} (Short Delivery Adjustment)",
        credit_type=CreditType.APPLIED,
        invoice_id=invoice.id,
    )

    invoice.total_cents -= to_apply
    invoice.credit_applied_cents += to_apply
    invoice.status = resolve_status(total_paid, invoice.total_cents)
    # Printed total is stale; force re-render
    invoice.pdf_url = None
