from __future__ import annotations

from ..extensions import db
from harvest.time_utils import to_utc_z
from .enums import InvoiceStatus, PaymentMethod, CreditType, enum_column_type


class Invoice(db.Model):
    """
    Billable record derived from exactly one order, net of pre-applied credit.

    INVARIANTS:
    - One invoice per order (unique order_id)
    - total_cents == subtotal_cents - credit_applied_cents
      (credit_applied_cents grows when short deliveries are applied later)
    - status reflects sum(payments) vs total_cents; amount paid is never
      stored here, it is always summed from payments
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_invoices_order"),
        db.CheckConstraint("credit_applied_cents >= 0", name="ck_invoices_credit_applied_nonneg"),
        db.Index("ix_invoices_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    credit_applied_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(
        enum_column_type(InvoiceStatus, "invoice_status"),
        nullable=False,
        default=InvoiceStatus.UNPAID,
        index=True,
    )
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)

    # Cached rendering location; cleared whenever total_cents changes
    pdf_url = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    order = db.relationship("Order", backref=db.backref("invoice", uselist=False, lazy=True))
    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    payments = db.relationship("Payment", back_populates="invoice", lazy=True, order_by="Payment.id")
    __mapper_args__ = {"version_id_col": version_id}

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "status": self.status.value,
            "subtotal_cents": self.subtotal_cents,
            "credit_applied_cents": self.credit_applied_cents,
            "total_cents": self.total_cents,
        }

    def to_dict(self, include_payments: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "subtotal_cents": self.subtotal_cents,
            "credit_applied_cents": self.credit_applied_cents,
            "total_cents": self.total_cents,
            "status": self.status.value,
            "due_date": to_utc_z(self.due_date),
            "pdf_url": self.pdf_url,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_payments:
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class Payment(db.Model):
    """
    Money received against an invoice.

    IMMUTABLE: Payments are append-only. An invoice's amount paid is the
    sum of its payments.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        db.Index("ix_payments_customer_date", "customer_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(enum_column_type(PaymentMethod, "payment_method"), nullable=False, index=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", back_populates="payments")
    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))

    def to_dict(self, include_related: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "customer_id": self.customer_id,
            "amount_cents": self.amount_cents,
            "method": self.method.value,
            "payment_date": to_utc_z(self.payment_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
        if include_related:
            data["invoice"] = self.invoice.to_summary() if self.invoice else None
            data["customer"] = self.customer.to_summary() if self.customer else None
        return data


class Credit(db.Model):
    """
    Append-only customer credit ledger.

    Amounts are signed: positive entries grant credit (overpayment,
    short delivery), negative entries consume it (applied, refund).
    Balance = max(0, sum(amount_cents)).

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "credits"
    __table_args__ = (
        db.Index("ix_credits_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    type = db.Column(enum_column_type(CreditType, "credit_type"), nullable=False, index=True)

    # Invoice that produced or consumed this entry (if any)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    customer = db.relationship("Customer", backref=db.backref("credits", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "amount_cents": self.amount_cents,
            "reason": self.reason,
            "type": self.type.value,
            "invoice_id": self.invoice_id,
            "created_at": to_utc_z(self.created_at),
        }
