# Overview: Pytest coverage for invoice generation and invoice queries.

from datetime import timedelta

import pytest

from harvest.errors import ConflictError, NotFoundError
from harvest.models import Credit, CreditType, Invoice, InvoiceStatus
from harvest.services import credit_service, invoice_service
from harvest.time_utils import utcnow


class TestGenerateInvoice:
    def test_subtotal_uses_order_time_prices(self, db_session, customer, spinach, make_order):
        # Catalog price has moved since the order was placed
        spinach.price_cents = 9999
        db_session.commit()
        order = make_order(customer, [(spinach, 3, 2550)])

        invoice = invoice_service.generate_invoice(order.id)

        assert invoice.subtotal_cents == 7650
        assert invoice.credit_applied_cents == 0
        assert invoice.total_cents == 7650
        assert invoice.status == InvoiceStatus.UNPAID
        assert invoice.customer_id == customer.id
        assert invoice.pdf_url is None

    def test_delivery_fee_is_not_billed(self, db_session, customer, spinach, make_order):
        order = make_order(customer, [(spinach, 1, 2550)], delivery_fee_cents=6000)

        invoice = invoice_service.generate_invoice(order.id)

        assert invoice.subtotal_cents == 2550

    def test_due_date_is_fourteen_days_out(self, db_session, hundred_rand_order):
        before = utcnow()
        invoice = invoice_service.generate_invoice(hundred_rand_order.id)
        after = utcnow()

        assert before + timedelta(days=14) <= invoice.due_date <= after + timedelta(days=14)

    def test_second_generation_conflicts_and_first_is_unchanged(self, db_session, hundred_rand_order):
        first = invoice_service.generate_invoice(hundred_rand_order.id)
        snapshot = first.to_dict()

        with pytest.raises(ConflictError) as exc:
            invoice_service.generate_invoice(hundred_rand_order.id)

        assert str(exc.value) == "Invoice already exists for this order"
        assert exc.value.code == "CONFLICT"
        assert db_session.query(Invoice).count() == 1
        assert invoice_service.get_invoice(first.id).to_dict() == snapshot

    def test_racing_insert_hits_unique_order_and_conflicts(
        self, db_session, customer, hundred_rand_order, give_credit, monkeypatch
    ):
        # Another generator committed its invoice after our existence check ran
        first = invoice_service.generate_invoice(hundred_rand_order.id)
        give_credit(customer, 3000)
        monkeypatch.setattr(invoice_service, "_existing_invoice", lambda order_id: None)

        with pytest.raises(ConflictError) as exc:
            invoice_service.generate_invoice(hundred_rand_order.id)

        assert str(exc.value) == "Invoice already exists for this order"
        assert db_session.query(Invoice).count() == 1
        assert invoice_service.get_invoice(first.id).credit_applied_cents == 0
        assert db_session.query(Credit).filter_by(type=CreditType.APPLIED).count() == 0
        assert credit_service.get_credit_balance(customer.id) == 3000

    def test_missing_order(self, db_session):
        with pytest.raises(NotFoundError) as exc:
            invoice_service.generate_invoice(424242)
        assert str(exc.value) == "Order not found"

    def test_credit_smaller_than_subtotal(self, db_session, customer, hundred_rand_order, give_credit):
        give_credit(customer, 3000)

        invoice = invoice_service.generate_invoice(hundred_rand_order.id)

        assert invoice.credit_applied_cents == 3000
        assert invoice.total_cents == 7000
        assert invoice.status == InvoiceStatus.UNPAID
        assert credit_service.get_credit_balance(customer.id) == 0

        applied = db_session.query(Credit).filter_by(type=CreditType.APPLIED).one()
        assert applied.amount_cents == -3000
        assert applied.invoice_id == invoice.id
        assert applied.reason == f"Applied to invoice {invoice.id}"

    def test_credit_covering_subtotal_marks_paid(self, db_session, customer, hundred_rand_order, give_credit):
        give_credit(customer, 15000)

        invoice = invoice_service.generate_invoice(hundred_rand_order.id)

        assert invoice.credit_applied_cents == 10000
        assert invoice.total_cents == 0
        assert invoice.status == InvoiceStatus.PAID
        assert credit_service.get_credit_balance(customer.id) == 5000

    def test_negative_running_ledger_applies_nothing(self, db_session, customer, hundred_rand_order, give_credit):
        give_credit(customer, -500, CreditType.APPLIED)

        invoice = invoice_service.generate_invoice(hundred_rand_order.id)

        assert invoice.credit_applied_cents == 0
        assert db_session.query(Credit).filter_by(type=CreditType.APPLIED).count() == 1

    def test_failure_after_invoice_insert_rolls_back_everything(
        self, db_session, customer, hundred_rand_order, give_credit, monkeypatch
    ):
        give_credit(customer, 3000)

        def _boom(**kwargs):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(invoice_service, "append_credit", _boom)

        with pytest.raises(RuntimeError):
            invoice_service.generate_invoice(hundred_rand_order.id)

        assert db_session.query(Invoice).count() == 0
        assert credit_service.get_credit_balance(customer.id) == 3000


class TestBulkInvoices:
    def test_failures_are_isolated(self, db_session, customer, spinach, make_order):
        ok_1 = make_order(customer, [(spinach, 1, 2550)])
        ok_2 = make_order(customer, [(spinach, 2, 2550)])
        already = make_order(customer, [(spinach, 3, 2550)])
        invoice_service.generate_invoice(already.id)

        results = invoice_service.generate_bulk_invoices([ok_1.id, 999999, already.id, ok_2.id])

        assert results["success_count"] == 2
        assert results["failed_count"] == 2
        assert results["errors"] == [
            {"order_id": 999999, "error": "Order not found"},
            {"order_id": already.id, "error": "Invoice already exists for this order"},
        ]
        assert len(results["invoice_ids"]) == 2
        assert db_session.query(Invoice).count() == 3

    def test_credit_is_consumed_once_across_batch(self, db_session, customer, spinach, make_order, give_credit):
        give_credit(customer, 4000)
        first = make_order(customer, [(spinach, 1, 2550)])
        second = make_order(customer, [(spinach, 1, 2550)])

        invoice_service.generate_bulk_invoices([first.id, second.id])

        a = db_session.query(Invoice).filter_by(order_id=first.id).one()
        b = db_session.query(Invoice).filter_by(order_id=second.id).one()
        assert a.credit_applied_cents == 2550
        assert b.credit_applied_cents == 1450
        assert credit_service.get_credit_balance(customer.id) == 0


class TestInvoiceQueries:
    def test_list_filters(self, db_session, customer, other_customer, spinach, make_order, give_credit):
        give_credit(other_customer, 10000)
        mine = invoice_service.generate_invoice(make_order(customer, [(spinach, 1, 2550)]).id)
        theirs = invoice_service.generate_invoice(make_order(other_customer, [(spinach, 1, 2550)]).id)

        assert [i.id for i in invoice_service.list_invoices(customer_id=customer.id)] == [mine.id]
        assert [i.id for i in invoice_service.list_invoices(customer_name="van wyk")] == [theirs.id]
        assert [i.id for i in invoice_service.list_invoices(status="paid")] == [theirs.id]
        assert [i.id for i in invoice_service.list_invoices(status=InvoiceStatus.UNPAID)] == [mine.id]
        assert [i.id for i in invoice_service.list_invoices()] == [theirs.id, mine.id]
        assert invoice_service.get_customer_invoices(other_customer.id)[0].id == theirs.id

    def test_balance_due(self, db_session, hundred_rand_order):
        invoice = invoice_service.generate_invoice(hundred_rand_order.id)

        assert invoice_service.invoice_balance_due(invoice.id) == 10000
        with pytest.raises(NotFoundError):
            invoice_service.invoice_balance_due(invoice.id + 1)

    def test_resolve_status(self):
        assert invoice_service.resolve_status(0, 0) == InvoiceStatus.PAID
        assert invoice_service.resolve_status(0, 100) == InvoiceStatus.UNPAID
        assert invoice_service.resolve_status(40, 100) == InvoiceStatus.PARTIAL
        assert invoice_service.resolve_status(100, 100) == InvoiceStatus.PAID
        assert invoice_service.resolve_status(150, 100) == InvoiceStatus.PAID
