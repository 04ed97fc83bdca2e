# Overview: Service-layer operations for the customer credit ledger.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Credit, CreditType, Customer
from .concurrency import lock_for_update
"""
Credit Ledger Invariants (authoritative)

- Append-only: entries are inserted, never updated or deleted.
- Amounts are signed cents; the running sum may dip below zero.
- The exposed balance is max(0, sum(amount_cents)).
- Entries are written inside the same DB transaction as the billing
  event they record (invoice generation, payment, short delivery).
"""


def get_credit_balance(customer_id: int) -> int:
    """
    Current credit balance for a customer, in cents, floored at zero.

    Reads through the active session, so inside a unit of work it sees
    entries flushed earlier in the same transaction.
    """
    total = db.session.query(
        func.coalesce(func.sum(Credit.amount_cents), 0)
    ).filter(Credit.customer_id == customer_id).scalar() or 0
    return max(0, int(total))


def append_credit(
    *,
    customer_id: int,
    amount_cents: int,
    reason: str,
    credit_type: CreditType,
    invoice_id: int | None = None,
) -> Credit:
    """
    Append one signed ledger entry.

    - No balance validation; callers own the economics.
    - Flushes without committing so the caller's transaction decides.
    """
    credit = Credit(
        customer_id=customer_id,
        amount_cents=amount_cents,
        reason=reason,
        type=CreditType(credit_type),
        invoice_id=invoice_id,
    )
    db.session.add(credit)
    db.session.flush()  # ensures credit.id is assigned without committing
    return credit


def calculate_credit_to_apply(customer_id: int, amount_cents: int) -> int:
    """How much standing credit can be consumed against amount_cents (no writes)."""
    return min(get_credit_balance(customer_id), max(0, amount_cents))


def get_customer_credits(customer_id: int) -> list[Credit]:
    """All ledger entries for a customer, newest first."""
    return db.session.query(Credit).filter_by(
        customer_id=customer_id
    ).order_by(Credit.created_at.desc(), Credit.id.desc()).all()


def lock_customer(customer_id: int) -> Customer | None:
    """
    Lock the customer row for the rest of the transaction.

    Credit consumers take this lock before reading the balance so two
    invoices for the same customer cannot both spend the same credit.
    """
    return lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
