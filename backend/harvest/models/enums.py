# Overview: Closed enumerations for billing status and ledger fields.

from __future__ import annotations

import enum

from ..extensions import db


class InvoiceStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    YOCO = "yoco"
    EFT = "eft"


class CreditType(str, enum.Enum):
    """
    Ledger entry origin.

    - OVERPAYMENT: excess of payments over an invoice total (positive)
    - SHORT_DELIVERY: compensation for undelivered items (positive)
    - APPLIED: credit consumed against an invoice (negative)
    - REFUND: credit paid back out to the customer (negative)
    """
    OVERPAYMENT = "overpayment"
    SHORT_DELIVERY = "short_delivery"
    APPLIED = "applied"
    REFUND = "refund"


def enum_column_type(enum_cls: type[enum.Enum], name: str):
    """String-backed enum column storing the lowercase values, with a CHECK constraint."""
    return db.Enum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        validate_strings=True,
        length=16,
        values_callable=lambda members: [m.value for m in members],
    )
