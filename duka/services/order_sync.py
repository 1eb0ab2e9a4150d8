# duka/services/order_sync.py
"""
Recompute an order's amount_paid / payment_status from its payment records.

This is the single writer of those two fields after an order is placed; call
it after every payment insert or payment status change. Calling it again
without new payments yields the same summary.
"""
from __future__ import annotations

import logging
from typing import Optional

from duka.domain.money import compute_amount_paid_from_payments, compute_balance_due, ZERO
from duka.domain.payment_status import derive_payment_status
from duka.domain.records import PaymentStatus, PaymentSummary
from duka.errors import SchemaMismatchError, StoreError

log = logging.getLogger(__name__)


def _summary(order, amount_paid, payment_status) -> PaymentSummary:
    return PaymentSummary(
        order_id=order.id,
        amount_paid=amount_paid,
        total=order.total,
        balance_due=compute_balance_due(order.total, amount_paid),
        payment_status=payment_status,
    )


def refresh_order_payment_summary(store, order_id: str) -> Optional[PaymentSummary]:
    order = store.get_order(order_id)
    if order is None:
        return None

    try:
        payments = store.list_payments(order.id)
    except SchemaMismatchError as exc:
        # payments not migrated: the persisted status is all there is
        log.warning("Payments unavailable for order %s (%s); using stored status", order.id, exc.message)
        status = order.payment_status
        amount_paid = order.total if status == PaymentStatus.PAID else ZERO
        return _summary(order, amount_paid, status)

    amount_paid = compute_amount_paid_from_payments(payments)
    payment_status = derive_payment_status(
        order.payment_method,
        order.total,
        amount_paid,
        [p.status for p in payments],
    )
    paid_times = [p.paid_at or p.created_at for p in payments if p.status == PaymentStatus.PAID]
    last_payment_at = max(paid_times) if paid_times else None

    try:
        store.save_payment_summary(order.id, amount_paid, payment_status, last_payment_at)
    except SchemaMismatchError as exc:
        log.warning("Could not persist payment summary of order %s: %s", order.id, exc.message)
    except StoreError:
        log.exception("Could not persist payment summary of order %s", order.id)

    return _summary(order, amount_paid, payment_status)
