# duka/services/payments.py
"""
Payments against an existing order: customer balance payments, admin manual
payments and confirmations, and gateway settlement.

Every path that adds or changes a payment record runs under the store's
per-order lock and ends with refresh_order_payment_summary.
"""
from __future__ import annotations

import logging
import urllib.parse
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from duka.domain.money import (
    compute_held_amount,
    format_tzs,
    normalize_phone,
    round_money,
)
from duka.domain.payment_status import parse_payment_method
from duka.domain.records import (
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    PaymentSummary,
    new_id,
    utcnow,
)
from duka.errors import (
    AlreadyPaidError,
    BalanceExceededError,
    ForbiddenError,
    GatewayError,
    MissingRelationError,
    NotFoundError,
    SchemaMismatchError,
    ValidationError,
)

from .order_sync import refresh_order_payment_summary

log = logging.getLogger(__name__)

MIN_PHONE_DIGITS = 6
DEFAULT_HOLD_MINUTES = 60
PAYMENTS_NOT_MIGRATED = (
    "Database schema missing order_payments support. "
    "Tafadhali run SQL migration mpya kisha jaribu tena."
)


@dataclass
class PaymentOutcome:
    status: str  # "payment_required" | "recorded"
    payment: PaymentRecord
    summary: Optional[PaymentSummary] = None
    payment_url: str = ""
    tracking_id: str = ""


@dataclass
class Settlement:
    order_id: str
    payment_id: str
    tracking_id: str
    payment_status: str
    gateway_status: str


def hold_cutoff(hold_minutes: int = DEFAULT_HOLD_MINUTES):
    return utcnow() - timedelta(minutes=max(0, int(hold_minutes)))


def gateway_callback_url(base_url: str, order_id: str, payment_id: str) -> str:
    query = urllib.parse.urlencode({"order": order_id, "payment": payment_id})
    return f"{base_url.rstrip('/')}/api/payments/gateway/callback?{query}"


def require_gateway(gateway):
    if gateway is None:
        raise GatewayError("Payment gateway is not available.")
    if not gateway.is_configured:
        raise GatewayError(f"Pesapal is not configured. Missing: {', '.join(gateway.missing_config())}")
    return gateway


def _require_order(store, order_id: str):
    order = store.get_order(order_id)
    if order is None:
        raise NotFoundError("Order haijapatikana.")
    return order


def _check_against_balance(store, order, amount, cutoff, include_held: bool = True) -> PaymentSummary:
    """
    Fresh balance for `order`; raises when `amount` does not fit in it once
    unsettled claims are set aside (only paid money with include_held=False).
    """
    summary = refresh_order_payment_summary(store, order.id)
    if summary is None:
        raise NotFoundError("Order haijapatikana.")

    balance = summary.balance_due
    if balance <= 0:
        raise AlreadyPaidError("Order hii tayari imelipwa yote.")
    if amount > balance:
        raise BalanceExceededError(
            f"Kiasi kimezidi salio. Salio lililobaki ni {format_tzs(balance)}.",
            balance_due=balance,
        )
    if not include_held:
        return summary

    try:
        payments = store.list_payments(order.id)
    except MissingRelationError as exc:
        raise MissingRelationError(PAYMENTS_NOT_MIGRATED, table="order_payments") from exc

    held = compute_held_amount(payments, cutoff)
    available = round_money(max(balance - held, 0))
    if amount > available:
        raise BalanceExceededError(
            "Kuna malipo yanayosubiri kuthibitishwa. "
            f"Kiasi unachoweza kulipa sasa ni {format_tzs(available)}.",
            balance_due=available,
        )
    return summary


def _insert_guarded(store, record: PaymentRecord, total, cutoff, include_held: bool = True) -> PaymentRecord:
    try:
        return store.insert_payment(record, ceiling=total, hold_cutoff=cutoff, include_held=include_held)
    except MissingRelationError as exc:
        raise MissingRelationError(PAYMENTS_NOT_MIGRATED, table="order_payments") from exc


def create_balance_payment(
    store,
    gateway,
    order_id: str,
    phone: str,
    amount,
    method=None,
    notes: str = "",
    callback_base: str = "",
    hold_minutes: int = DEFAULT_HOLD_MINUTES,
) -> PaymentOutcome:
    """
    Customer-initiated installment against the outstanding balance. Creates
    exactly one payment record, or none when anything fails.
    """
    normalized_phone = normalize_phone(phone)
    if len(normalized_phone) < MIN_PHONE_DIGITS:
        raise ValidationError("Weka namba ya simu uliotumia kuagiza.")

    amount = round_money(amount)
    if amount <= 0:
        raise ValidationError("Weka kiasi sahihi cha malipo.")

    method = parse_payment_method(method, default=PaymentMethod.PESAPAL)
    if method == PaymentMethod.MANUAL:
        method = PaymentMethod.PESAPAL
    notes = (notes or "").strip() or "Installment payment"

    _require_order(store, order_id)
    with store.order_lock(order_id):
        order = _require_order(store, order_id)
        if order.phone_normalized != normalized_phone:
            raise ForbiddenError("Namba ya simu haifanani na order hii.")

        cutoff = hold_cutoff(hold_minutes)
        summary = _check_against_balance(store, order, amount, cutoff)

        record = PaymentRecord(
            id=new_id(),
            order_id=order.id,
            amount=amount,
            method=method,
            status=PaymentStatus.PENDING_VERIFICATION if method == PaymentMethod.BANK_DEPOSIT else PaymentStatus.PENDING,
            notes=notes,
        )

        if method == PaymentMethod.PESAPAL:
            gateway_order = require_gateway(gateway).create_order(
                order_id=record.id,
                amount=amount,
                description=f"Installment payment for order {order.id}",
                callback_url=gateway_callback_url(callback_base, order.id, record.id),
                customer_name=order.full_name or "Customer",
                customer_phone=phone,
            )
            record.reference = gateway_order.merchant_reference
            record.tracking_id = gateway_order.tracking_id
            try:
                _insert_guarded(store, record, summary.total, cutoff)
            except BalanceExceededError:
                log.warning(
                    "Pesapal order %s submitted but its payment was rejected for order %s",
                    gateway_order.tracking_id,
                    order.id,
                )
                raise
            refreshed = refresh_order_payment_summary(store, order.id)
            return PaymentOutcome(
                status="payment_required",
                payment=record,
                summary=refreshed,
                payment_url=gateway_order.redirect_url,
                tracking_id=gateway_order.tracking_id,
            )

        _insert_guarded(store, record, summary.total, cutoff)
        refreshed = refresh_order_payment_summary(store, order.id)

    log.info("Payment %s (%s, %s) recorded for order %s", record.id, method.value, amount, order_id)
    return PaymentOutcome(status="recorded", payment=record, summary=refreshed)


def record_manual_payment(
    store,
    order_id: str,
    amount,
    notes: str = "",
    reference: str = "",
    hold_minutes: int = DEFAULT_HOLD_MINUTES,
) -> PaymentOutcome:
    """
    Admin records money received outside the site (cash, M-Pesa till, ...).

    The admin asserts the money arrived, so only paid records count against
    the total; unconfirmed claims do not block it.
    """
    amount = round_money(amount)
    if amount <= 0:
        raise ValidationError("Weka kiasi sahihi cha malipo.")

    _require_order(store, order_id)
    with store.order_lock(order_id):
        order = _require_order(store, order_id)

        cutoff = hold_cutoff(hold_minutes)
        summary = _check_against_balance(store, order, amount, cutoff, include_held=False)

        now = utcnow()
        record = PaymentRecord(
            id=new_id(),
            order_id=order.id,
            amount=amount,
            method=PaymentMethod.MANUAL,
            status=PaymentStatus.PAID,
            reference=(reference or "").strip(),
            notes=(notes or "").strip() or "Manual payment",
            created_at=now,
            paid_at=now,
        )
        _insert_guarded(store, record, summary.total, cutoff, include_held=False)
        refreshed = refresh_order_payment_summary(store, order.id)

    log.info("Manual payment %s of %s recorded for order %s", record.id, amount, order_id)
    return PaymentOutcome(status="recorded", payment=record, summary=refreshed)


def confirm_payment(store, payment_id: str):
    """
    Admin confirmation: pending-verification (bank deposit) or pending -> paid.
    Confirming an already paid record changes nothing.
    """
    try:
        payment = store.get_payment(payment_id)
    except MissingRelationError as exc:
        raise MissingRelationError(PAYMENTS_NOT_MIGRATED, table="order_payments") from exc
    if payment is None:
        raise NotFoundError("Payment haijapatikana.")

    with store.order_lock(payment.order_id):
        payment = store.get_payment(payment_id)
        if payment.status == PaymentStatus.PAID:
            return payment, refresh_order_payment_summary(store, payment.order_id)
        if payment.status not in (PaymentStatus.PENDING, PaymentStatus.PENDING_VERIFICATION):
            raise ValidationError(f"Payment is {payment.status.value} and cannot be confirmed.")

        summary = refresh_order_payment_summary(store, payment.order_id)
        if summary is not None and payment.amount > summary.balance_due:
            raise BalanceExceededError(
                f"Confirming this payment would exceed the order total (balance {format_tzs(summary.balance_due)}).",
                balance_due=summary.balance_due,
            )

        payment = store.update_payment(payment.id, PaymentStatus.PAID, paid_at=utcnow())
        summary = refresh_order_payment_summary(store, payment.order_id)

    log.info("Payment %s confirmed by admin (order %s)", payment.id, payment.order_id)
    return payment, summary


def reject_payment(store, payment_id: str, reason: str = ""):
    """
    Admin rejects an unconfirmed claim (a bank deposit that never arrived),
    releasing the share of the balance it held. Paid records cannot be
    rejected; rejecting a failed record changes nothing.
    """
    try:
        payment = store.get_payment(payment_id)
    except MissingRelationError as exc:
        raise MissingRelationError(PAYMENTS_NOT_MIGRATED, table="order_payments") from exc
    if payment is None:
        raise NotFoundError("Payment haijapatikana.")

    with store.order_lock(payment.order_id):
        payment = store.get_payment(payment_id)
        if payment.status == PaymentStatus.PAID:
            raise ValidationError("Payment is paid and cannot be rejected.")
        if payment.status != PaymentStatus.FAILED:
            payment = store.update_payment(payment.id, PaymentStatus.FAILED)
        summary = refresh_order_payment_summary(store, payment.order_id)

    log.info("Payment %s rejected by admin (order %s): %s", payment.id, payment.order_id, reason or "-")
    return payment, summary


def _resolve_payment(store, payment_id: str, merchant_reference: str, tracking_id: str):
    for candidate in (payment_id, merchant_reference):
        if candidate:
            found = store.get_payment(candidate)
            if found is not None:
                return found
    return store.find_payment_by_tracking(tracking_id)


def apply_gateway_settlement(
    store,
    gateway,
    tracking_id: str,
    merchant_reference: str = "",
    order_id: str = "",
    payment_id: str = "",
) -> Settlement:
    """
    Ask the gateway how a transaction ended and fold the answer into the
    matching payment record. A paid record is never moved back.
    """
    tracking_id = (tracking_id or "").strip()
    if not tracking_id:
        raise ValidationError("Missing tracking id")

    result = require_gateway(gateway).get_transaction_status(tracking_id)
    if result.is_paid:
        new_status = PaymentStatus.PAID
    elif result.is_failed:
        new_status = PaymentStatus.FAILED
    else:
        new_status = PaymentStatus.PENDING

    try:
        payment = _resolve_payment(store, payment_id, merchant_reference, tracking_id)
    except MissingRelationError as exc:
        log.warning("Gateway settlement without payments table (%s)", exc.message)
        payment = None
        if order_id and new_status == PaymentStatus.PAID:
            try:
                store.update_order(order_id, payment_status=PaymentStatus.PAID)
            except SchemaMismatchError as drift:
                log.warning("Could not mark order %s paid: %s", order_id, drift.message)

    if payment is not None:
        order_id = payment.order_id
        with store.order_lock(order_id):
            current = store.get_payment(payment.id) or payment
            if current.status == PaymentStatus.PAID:
                if new_status != PaymentStatus.PAID:
                    log.warning(
                        "Gateway reports %s for already paid payment %s; keeping paid",
                        result.status,
                        current.id,
                    )
            elif new_status == PaymentStatus.PENDING and current.status != PaymentStatus.PENDING:
                # a settled record only moves forward
                log.info("Gateway still pending for %s payment %s; keeping it", current.status.value, current.id)
            else:
                store.update_payment(
                    current.id,
                    new_status,
                    paid_at=utcnow() if new_status == PaymentStatus.PAID else None,
                    tracking_id=tracking_id,
                    reference=merchant_reference or current.reference or current.id,
                )
            summary = refresh_order_payment_summary(store, order_id)
    else:
        if payment_id or merchant_reference:
            log.warning("No payment matches gateway notification (tracking %s)", tracking_id)
        summary = refresh_order_payment_summary(store, order_id) if order_id else None

    log.info("Gateway settlement: tracking=%s gateway=%s order=%s", tracking_id, result.status, order_id)
    return Settlement(
        order_id=order_id or "",
        payment_id=payment.id if payment is not None else (payment_id or merchant_reference or ""),
        tracking_id=tracking_id,
        payment_status=(summary.payment_status if summary else new_status).value,
        gateway_status=result.status,
    )
