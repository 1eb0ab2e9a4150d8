# duka/domain/payment_status.py
"""
Decision table for an order's aggregate payment status.

The order shows the aggregate of its payment history, never the latest single
event, and is "paid" only when the arithmetic balance is actually zero.
"""
from __future__ import annotations

from typing import Iterable, Optional

from .money import compute_balance_due, round_money
from .records import PaymentMethod, PaymentStatus

_METHOD_ALIASES = {
    "gateway": PaymentMethod.PESAPAL,
    "cod": PaymentMethod.CASH_ON_DELIVERY,
}


def parse_payment_method(value, default: Optional[PaymentMethod] = PaymentMethod.CASH_ON_DELIVERY):
    raw = str(getattr(value, "value", value) or "").strip().lower()
    if raw in _METHOD_ALIASES:
        return _METHOD_ALIASES[raw]
    try:
        return PaymentMethod(raw)
    except ValueError:
        return default


def parse_payment_status(value) -> Optional[PaymentStatus]:
    raw = str(getattr(value, "value", value) or "").strip().lower()
    try:
        return PaymentStatus(raw)
    except ValueError:
        return None


def derive_payment_status(
    payment_method,
    total,
    amount_paid,
    payment_statuses: Iterable = (),
) -> PaymentStatus:
    total = round_money(total)
    amount_paid = round_money(amount_paid)

    if compute_balance_due(total, amount_paid) <= 0 and total > 0:
        return PaymentStatus.PAID

    if amount_paid > 0:
        return PaymentStatus.PARTIAL

    statuses = [s for s in (parse_payment_status(v) for v in payment_statuses or ()) if s is not None]
    if PaymentStatus.PENDING_VERIFICATION in statuses:
        return PaymentStatus.PENDING_VERIFICATION
    if PaymentStatus.PENDING in statuses:
        return PaymentStatus.PENDING
    if statuses and all(s == PaymentStatus.FAILED for s in statuses):
        return PaymentStatus.FAILED

    method = parse_payment_method(payment_method)
    if method == PaymentMethod.CASH_ON_DELIVERY:
        return PaymentStatus.UNPAID
    if method == PaymentMethod.BANK_DEPOSIT:
        return PaymentStatus.PENDING_VERIFICATION
    return PaymentStatus.PENDING
