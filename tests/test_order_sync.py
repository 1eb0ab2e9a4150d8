"""Tests for refresh_order_payment_summary."""

from datetime import datetime, timedelta
from decimal import Decimal

from conftest import make_order

from duka.domain.records import PaymentMethod, PaymentRecord, PaymentStatus, new_id
from duka.services.order_sync import refresh_order_payment_summary


def _payment(order, amount, status, method=PaymentMethod.MANUAL, **kwargs):
    return PaymentRecord(
        id=new_id(),
        order_id=order.id,
        amount=Decimal(str(amount)),
        method=method,
        status=status,
        **kwargs,
    )


class TestRefreshOrderPaymentSummary:
    def test_unknown_order(self, store):
        assert refresh_order_payment_summary(store, "missing") is None

    def test_no_payments_falls_back_to_method(self, store):
        cod = make_order(store)
        bank = make_order(store, method=PaymentMethod.BANK_DEPOSIT)

        assert refresh_order_payment_summary(store, cod.id).payment_status == PaymentStatus.UNPAID
        assert refresh_order_payment_summary(store, bank.id).payment_status == PaymentStatus.PENDING_VERIFICATION

    def test_partial_then_paid(self, store):
        order = make_order(store, total=100000)
        store.insert_payment(_payment(order, 30000, PaymentStatus.PAID))

        summary = refresh_order_payment_summary(store, order.id)
        assert summary.amount_paid == Decimal("30000.00")
        assert summary.balance_due == Decimal("70000.00")
        assert summary.payment_status == PaymentStatus.PARTIAL

        store.insert_payment(_payment(order, 70000, PaymentStatus.PAID))
        summary = refresh_order_payment_summary(store, order.id)
        assert summary.payment_status == PaymentStatus.PAID
        assert summary.balance_due == Decimal("0.00")

        saved = store.get_order(order.id)
        assert saved.amount_paid == Decimal("100000.00")
        assert saved.payment_status == PaymentStatus.PAID

    def test_pending_and_failed_records_do_not_count(self, store):
        order = make_order(store, method=PaymentMethod.PESAPAL)
        store.insert_payment(_payment(order, 50000, PaymentStatus.FAILED))
        store.insert_payment(_payment(order, 50000, PaymentStatus.PENDING))

        summary = refresh_order_payment_summary(store, order.id)
        assert summary.amount_paid == Decimal("0.00")
        assert summary.payment_status == PaymentStatus.PENDING

    def test_idempotent(self, store):
        order = make_order(store)
        store.insert_payment(_payment(order, 25000, PaymentStatus.PAID))

        first = refresh_order_payment_summary(store, order.id)
        second = refresh_order_payment_summary(store, order.id)
        assert first == second

    def test_last_payment_at_is_latest_paid_time(self, store):
        order = make_order(store)
        earlier = datetime(2025, 1, 1, 10, 0)
        later = datetime(2025, 1, 5, 10, 0)
        store.insert_payment(_payment(order, 1000, PaymentStatus.PAID, paid_at=later))
        store.insert_payment(_payment(order, 1000, PaymentStatus.PAID, paid_at=earlier))
        store.insert_payment(
            _payment(order, 1000, PaymentStatus.PENDING, created_at=later + timedelta(days=1))
        )

        refresh_order_payment_summary(store, order.id)
        assert store.get_order(order.id).last_payment_at == later

    def test_balance_after_total_drops_below_paid_is_zero(self, store):
        order = make_order(store, total=50000)
        store.insert_payment(_payment(order, 50000, PaymentStatus.PAID))
        store.update_order(order.id, total=Decimal("40000"))

        summary = refresh_order_payment_summary(store, order.id)
        assert summary.balance_due == Decimal("0.00")
        assert summary.payment_status == PaymentStatus.PAID
