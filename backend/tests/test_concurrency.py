# Overview: Pytest coverage for transaction boundaries and retry behavior.

import pytest
from sqlalchemy.orm.exc import StaleDataError

from harvest.models import Credit, CreditType
from harvest.services import concurrency, credit_service


def test_run_in_transaction_commits(db_session, customer):
    def _op():
        return credit_service.append_credit(
            customer_id=customer.id, amount_cents=100, reason="x", credit_type=CreditType.OVERPAYMENT
        )

    concurrency.run_in_transaction(_op)
    db_session.rollback()

    assert db_session.query(Credit).count() == 1


def test_run_in_transaction_rolls_back_partial_writes(db_session, customer):
    def _op():
        credit_service.append_credit(
            customer_id=customer.id, amount_cents=100, reason="x", credit_type=CreditType.OVERPAYMENT
        )
        raise ValueError("second write failed")

    with pytest.raises(ValueError):
        concurrency.run_in_transaction(_op)

    assert db_session.query(Credit).count() == 0


def test_retry_on_stale_data(db_session, monkeypatch):
    monkeypatch.setattr(concurrency.time, "sleep", lambda s: None)
    calls = []

    def _op():
        calls.append(1)
        if len(calls) < 3:
            raise StaleDataError("version mismatch")
        return "ok"

    assert concurrency.run_with_retry(_op) == "ok"
    assert len(calls) == 3


def test_retry_gives_up(db_session, monkeypatch):
    monkeypatch.setattr(concurrency.time, "sleep", lambda s: None)

    def _op():
        raise StaleDataError("version mismatch")

    with pytest.raises(StaleDataError):
        concurrency.run_with_retry(_op, attempts=2)


def test_business_errors_are_not_retried(db_session):
    calls = []

    def _op():
        calls.append(1)
        raise LookupError("nope")

    with pytest.raises(LookupError):
        concurrency.run_with_retry(_op)
    assert calls == [1]
