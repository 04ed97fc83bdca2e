# Overview: Read-only invoice statistics for the admin dashboard.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from harvest.extensions import db
from harvest.models import Invoice, InvoiceStatus, Payment
from harvest.time_utils import utcnow


def _empty_bucket() -> dict:
    return {"count": 0, "amount_cents": 0}


def calculate_invoice_stats(
    *,
    customer_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Partition invoices by status for the dashboard.

    Buckets:
    - outstanding: unpaid invoices, amount = total - paid
    - overdue: unpaid invoices past due_date (subset of outstanding)
    - partial: partially paid invoices, amount = total - paid
    - paid: paid invoices, amount = total

    total_revenue_cents is the sum of totals across all matched invoices;
    average_value_cents is that over the invoice count (integer cents).
    """
    now = now or utcnow()

    paid_subq = db.session.query(
        Payment.invoice_id.label("invoice_id"),
        func.sum(Payment.amount_cents).label("paid_cents"),
    ).group_by(Payment.invoice_id).subquery()

    query = db.session.query(
        Invoice.status,
        Invoice.total_cents,
        Invoice.due_date,
        func.coalesce(paid_subq.c.paid_cents, 0),
    ).outerjoin(paid_subq, paid_subq.c.invoice_id == Invoice.id)

    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)
    if start is not None:
        query = query.filter(Invoice.created_at >= start)
    if end is not None:
        query = query.filter(Invoice.created_at <= end)

    stats = {
        "outstanding": _empty_bucket(),
        "overdue": _empty_bucket(),
        "paid": _empty_bucket(),
        "partial": _empty_bucket(),
        "average_value_cents": 0,
        "total_revenue_cents": 0,
        "invoice_count": 0,
    }

    for status, total, due_date, paid in query.all():
        remaining = total - int(paid)

        if status == InvoiceStatus.PAID:
            stats["paid"]["count"] += 1
            stats["paid"]["amount_cents"] += total
        elif status == InvoiceStatus.PARTIAL:
            stats["partial"]["count"] += 1
            stats["partial"]["amount_cents"] += remaining
        else:
            stats["outstanding"]["count"] += 1
            stats["outstanding"]["amount_cents"] += remaining
            if due_date < now:
                stats["overdue"]["count"] += 1
                stats["overdue"]["amount_cents"] += remaining

        stats["total_revenue_cents"] += total
        stats["invoice_count"] += 1

    if stats["invoice_count"]:
        stats["average_value_cents"] = round(stats["total_revenue_cents"] / stats["invoice_count"])

    return stats
