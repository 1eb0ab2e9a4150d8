"""Decision table for an order's aggregate payment status."""

import pytest

from duka.domain.payment_status import derive_payment_status, parse_payment_method, parse_payment_status
from duka.domain.records import PaymentMethod, PaymentStatus

COD = "cash-on-delivery"
GATEWAY = "pesapal"
BANK = "bank-deposit"


class TestDerivePaymentStatus:
    @pytest.mark.parametrize("method", [COD, GATEWAY, BANK])
    def test_fully_paid_is_paid_for_every_method(self, method):
        assert derive_payment_status(method, 100000, 100000, []) == PaymentStatus.PAID

    def test_overpaid_is_paid(self):
        assert derive_payment_status(COD, 100000, 100000.004, []) == PaymentStatus.PAID

    def test_some_money_is_partial_even_with_pending_records(self):
        assert derive_payment_status(GATEWAY, 100000, 30000, ["pending", "paid"]) == PaymentStatus.PARTIAL

    def test_pending_verification_wins_over_pending(self):
        statuses = ["failed", "pending", "pending-verification"]
        assert derive_payment_status(GATEWAY, 100000, 0, statuses) == PaymentStatus.PENDING_VERIFICATION

    def test_pending_record(self):
        assert derive_payment_status(COD, 100000, 0, ["failed", "pending"]) == PaymentStatus.PENDING

    def test_all_failed(self):
        assert derive_payment_status(GATEWAY, 100000, 0, ["failed", "failed"]) == PaymentStatus.FAILED

    @pytest.mark.parametrize(
        "method, expected",
        [
            (COD, PaymentStatus.UNPAID),
            (BANK, PaymentStatus.PENDING_VERIFICATION),
            (GATEWAY, PaymentStatus.PENDING),
            ("gateway", PaymentStatus.PENDING),
        ],
    )
    def test_fallback_by_method(self, method, expected):
        assert derive_payment_status(method, 100000, 0, []) == expected

    def test_stale_paid_record_without_money_is_not_paid(self):
        # a "paid" status string with nothing summed must not make the order paid
        assert derive_payment_status(COD, 100000, 0, ["paid"]) == PaymentStatus.UNPAID

    def test_zero_total_is_never_paid(self):
        assert derive_payment_status(COD, 0, 0, []) == PaymentStatus.UNPAID

    def test_unknown_statuses_are_ignored(self):
        assert derive_payment_status(BANK, 5000, 0, ["refunded", None]) == PaymentStatus.PENDING_VERIFICATION


def test_parse_payment_method_aliases_and_default():
    assert parse_payment_method("gateway") == PaymentMethod.PESAPAL
    assert parse_payment_method(" Bank-Deposit ") == PaymentMethod.BANK_DEPOSIT
    assert parse_payment_method("bitcoin") == PaymentMethod.CASH_ON_DELIVERY
    assert parse_payment_method("bitcoin", default=None) is None


def test_parse_payment_status():
    assert parse_payment_status("pending-verification") == PaymentStatus.PENDING_VERIFICATION
    assert parse_payment_status(PaymentStatus.PAID) == PaymentStatus.PAID
    assert parse_payment_status("settled") is None


class TestEnumInput:
    @pytest.mark.parametrize(
        "method, expected",
        [
            (PaymentMethod.CASH_ON_DELIVERY, PaymentStatus.UNPAID),
            (PaymentMethod.BANK_DEPOSIT, PaymentStatus.PENDING_VERIFICATION),
            (PaymentMethod.PESAPAL, PaymentStatus.PENDING),
        ],
    )
    def test_fallback_accepts_enum_members(self, method, expected):
        assert derive_payment_status(method, 100000, 0, []) == expected

    def test_parse_payment_method_accepts_enum_members(self):
        for method in PaymentMethod:
            assert parse_payment_method(method) == method
