# duka/domain/money.py
"""
Money helpers used by every order/payment computation.

All amounts are Decimal quantized to 2 places (TZS has no practical minor
unit, but totals coming from the gateway and older rows may carry cents).
"""
from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

_NON_DIGITS = re.compile(r"\D+")


def round_money(value) -> Decimal:
    """Round to 2 dp; anything non-numeric or non-finite becomes 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    if not dec.is_finite():
        return ZERO
    return dec.quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_phone(phone) -> str:
    """Strip every non-digit character. Garbage in, empty string out."""
    if phone is None:
        return ""
    return _NON_DIGITS.sub("", str(phone))


def compute_order_total(subtotal, shipping_fee, shipping_adjustment=0) -> Decimal:
    total = round_money(subtotal) + round_money(shipping_fee) + round_money(shipping_adjustment)
    return round_money(max(ZERO, total))


def compute_balance_due(total, amount_paid) -> Decimal:
    return round_money(max(ZERO, round_money(total) - round_money(amount_paid)))


def compute_amount_paid_from_payments(payments: Iterable) -> Decimal:
    """
    Sum of `amount` over payment records whose status is exactly "paid".

    Accepts PaymentRecord objects or plain dicts (rows from the store).
    """
    total = ZERO
    for payment in payments:
        if _status_of(payment) != "paid":
            continue
        total += round_money(_field(payment, "amount"))
    return round_money(total)


def compute_held_amount(payments: Iterable, hold_cutoff: datetime | None = None) -> Decimal:
    """
    Amount already claimed against the balance but not settled yet.

    pending-verification claims are always held; gateway "pending" claims only
    while they are younger than `hold_cutoff` (abandoned checkouts expire).
    """
    total = ZERO
    for payment in payments:
        status = _status_of(payment)
        if status == "pending-verification":
            total += round_money(_field(payment, "amount"))
        elif status == "pending":
            created_at = _field(payment, "created_at")
            if hold_cutoff is None or created_at is None or created_at >= hold_cutoff:
                total += round_money(_field(payment, "amount"))
    return round_money(total)


def format_tzs(amount) -> str:
    value = round_money(amount)
    if value == value.to_integral_value():
        return f"TSh {int(value):,}"
    return f"TSh {value:,.2f}"


def _field(obj, name):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _status_of(obj) -> str:
    status = _field(obj, "status")
    return str(getattr(status, "value", status) or "")
