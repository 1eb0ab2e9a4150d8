# duka/services/orders.py
"""Order placement and admin order updates."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from duka.domain.money import (
    ZERO,
    compute_order_total,
    format_tzs,
    normalize_phone,
    round_money,
)
from duka.domain.payment_status import (
    derive_payment_status,
    parse_payment_method,
    parse_payment_status,
)
from duka.domain.records import (
    OrderLineItem,
    OrderRecord,
    OrderStatus,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    PaymentSummary,
    new_id,
)
from duka.domain.shipping import calculate_shipping_fee
from duka.errors import (
    MissingRelationError,
    NotFoundError,
    SchemaMismatchError,
    StoreError,
    ValidationError,
)

from .order_sync import refresh_order_payment_summary
from .payments import MIN_PHONE_DIGITS, gateway_callback_url, record_manual_payment, require_gateway

log = logging.getLogger(__name__)


@dataclass
class PlacedOrder:
    order: OrderRecord
    payment: Optional[PaymentRecord] = None
    payment_url: str = ""
    tracking_id: str = ""

    @property
    def status(self) -> str:
        return "payment_required" if self.payment_url else "ok"


def _text(value) -> str:
    return str(value or "").strip()


def _positive_int(value, default: int, label: str) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label}.")
    if number < 1:
        raise ValidationError(f"Invalid {label}.")
    return number


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _requested_lines(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    items = payload.get("items")
    if isinstance(items, list) and items:
        return [item for item in items if isinstance(item, dict)]
    if payload.get("productId"):
        return [payload]
    return []


def _build_line(store, raw: Dict[str, Any], index: int) -> OrderLineItem:
    product_id = _text(raw.get("productId") or raw.get("product_id"))
    product = store.get_product(product_id) if product_id else None
    if product is None:
        raise ValidationError("Bidhaa haijapatikana.")
    if not product.in_stock:
        raise ValidationError(f"{product.name} is out of stock.")

    quantity = _positive_int(raw.get("quantity"), 1, "quantity")
    paid_quantity = _positive_int(raw.get("paidQuantity"), quantity, "paid quantity")
    if paid_quantity > quantity:
        raise ValidationError("Invalid paid quantity.")
    free_quantity = quantity - paid_quantity
    if free_quantity and product.find_offer(paid_quantity, free_quantity) is None:
        raise ValidationError("Invalid quantity offer.")

    size = _text(raw.get("selectedSize")) or (product.size_options[0] if product.size_options else "")
    if product.size_options and size not in product.size_options:
        raise ValidationError("Please select a valid size option.")
    color = _text(raw.get("selectedColor")) or (product.color_options[0] if product.color_options else "")
    if product.color_options and color not in product.color_options:
        raise ValidationError("Please select a valid color option.")

    return OrderLineItem(
        id=f"{product.id}-{index + 1}",
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        paid_quantity=paid_quantity,
        free_quantity=free_quantity,
        unit_price=product.sale_price,
        original_unit_price=product.original_price,
        line_subtotal=round_money(product.sale_price * paid_quantity),
        line_original_total=round_money(product.original_price * quantity),
        selected_size=size,
        selected_color=color,
    )


def place_order(store, gateway, payload: Dict[str, Any], callback_base: str = "") -> PlacedOrder:
    """
    Price the cart from the catalog, open a gateway checkout when the
    customer pays online, then persist the order and its first payment.
    """
    full_name = _text(payload.get("fullName") or payload.get("customerName"))
    phone = _text(payload.get("phone"))
    address = _text(payload.get("address"))
    region_city = _text(payload.get("regionCity") or payload.get("address"))
    if not (full_name and phone and address and region_city):
        raise ValidationError("Jaza jina, namba ya simu, anwani na mkoa.")
    phone_normalized = normalize_phone(phone)
    if len(phone_normalized) < MIN_PHONE_DIGITS:
        raise ValidationError("Weka namba ya simu sahihi.")

    requested = _requested_lines(payload)
    if not requested:
        raise ValidationError("Invalid order data")
    lines = [_build_line(store, raw, i) for i, raw in enumerate(requested)]

    subtotal = round_money(sum((line.line_subtotal for line in lines), ZERO))
    shipping = calculate_shipping_fee(region_city, address)
    total = compute_order_total(subtotal, shipping.fee)
    if total <= 0:
        raise ValidationError("Invalid order total.")

    method = parse_payment_method(payload.get("paymentMethod"))
    if method == PaymentMethod.MANUAL:
        method = PaymentMethod.CASH_ON_DELIVERY

    installment = _as_bool(payload.get("installmentEnabled"))
    deposit = round_money(payload.get("depositAmount")) if installment else ZERO
    if installment and (deposit <= 0 or deposit >= total):
        raise ValidationError("Installment requires a deposit greater than 0 and less than order total.")

    order = OrderRecord(
        id=new_id(),
        full_name=full_name,
        phone=phone,
        phone_normalized=phone_normalized,
        region_city=region_city,
        address=address,
        order_items=lines,
        subtotal=subtotal,
        shipping_fee=shipping.fee,
        shipping_label=shipping.label,
        total=total,
        payment_method=method,
        payment_status=PaymentStatus.UNPAID,
        installment_enabled=installment,
        deposit_amount=deposit,
        installment_notes=_text(payload.get("installmentNotes")),
    )
    charge = deposit if installment else total

    initial = None
    placed = PlacedOrder(order=order)
    if method == PaymentMethod.PESAPAL:
        payment_id = new_id()
        # nothing is stored until the gateway accepted the checkout
        checkout = require_gateway(gateway).create_order(
            order_id=payment_id,
            amount=charge,
            description=f"Order for {lines[0].product_name}" + (f" +{len(lines) - 1}" if len(lines) > 1 else ""),
            callback_url=gateway_callback_url(callback_base, order.id, payment_id),
            customer_name=full_name,
            customer_phone=phone,
        )
        order.payment_reference = checkout.merchant_reference
        order.payment_tracking_id = checkout.tracking_id
        placed.payment_url = checkout.redirect_url
        placed.tracking_id = checkout.tracking_id
        initial = PaymentRecord(
            id=payment_id,
            order_id=order.id,
            amount=charge,
            method=method,
            status=PaymentStatus.PENDING,
            reference=checkout.merchant_reference,
            tracking_id=checkout.tracking_id,
            notes="Deposit" if installment else "Order payment",
        )
    elif method == PaymentMethod.BANK_DEPOSIT:
        initial = PaymentRecord(
            id=new_id(),
            order_id=order.id,
            amount=charge,
            method=method,
            status=PaymentStatus.PENDING_VERIFICATION,
            notes="Deposit" if installment else "Order payment",
        )

    order.payment_status = derive_payment_status(
        method, total, ZERO, [initial.status] if initial else []
    )
    store.insert_order(order)

    if initial is not None:
        try:
            store.insert_payment(initial)
            placed.payment = initial
        except SchemaMismatchError as exc:
            log.warning("Order %s placed without payment record: %s", order.id, exc.message)
        except StoreError:
            log.exception("Payment insert failed; removing order %s", order.id)
            store.delete_order(order.id)
            raise

    refresh_order_payment_summary(store, order.id)
    log.info(
        "Order %s placed: %s, %s, %s line(s)",
        order.id,
        format_tzs(total),
        method.value,
        len(lines),
    )
    return placed


def update_order_admin(
    store,
    order_id: str,
    status,
    payment_status=None,
    shipping_adjustment=None,
    shipping_adjustment_note=None,
):
    """
    Admin fulfillment update.

    A paymentStatus override of "paid" on an order with a balance records a
    manual payment for that balance (cash collected on delivery). Other
    overrides are written, but recorded payments win on the re-sync that
    follows.
    """
    try:
        status = OrderStatus(_text(getattr(status, "value", status)))
    except ValueError:
        raise ValidationError("Invalid payload")

    with store.order_lock(order_id):
        order = store.get_order(order_id)
        if order is None:
            raise NotFoundError("Order haijapatikana.")

        fields: Dict[str, Any] = {"status": status}
        override = parse_payment_status(payment_status) if payment_status else None
        if override is not None:
            fields["payment_status"] = override

        if shipping_adjustment is not None and shipping_adjustment != "":
            adjustment = round_money(shipping_adjustment)
            new_total = compute_order_total(order.subtotal, order.shipping_fee, adjustment)
            summary = refresh_order_payment_summary(store, order.id)
            if summary is not None and new_total < summary.amount_paid:
                raise ValidationError(
                    f"Total cannot be lower than the amount already paid ({format_tzs(summary.amount_paid)})."
                )
            fields["shipping_adjustment"] = adjustment
            fields["total"] = new_total
        if shipping_adjustment_note is not None:
            fields["shipping_adjustment_note"] = _text(shipping_adjustment_note)

        if not store.update_order(order.id, **fields):
            raise NotFoundError("Order haijapatikana.")
        summary: Optional[PaymentSummary] = refresh_order_payment_summary(store, order.id)

    log.info("Order %s updated by admin: %s", order_id, ", ".join(sorted(fields)))

    if override == PaymentStatus.PAID and summary is not None and summary.balance_due > 0:
        # the order lock is not reentrant, so this runs after it is released
        try:
            outcome = record_manual_payment(store, order_id, summary.balance_due, notes="Marked paid by admin")
            summary = outcome.summary
        except MissingRelationError as exc:
            # the stored override stands in for the missing payment record
            log.warning("Order %s marked paid without a payment record: %s", order_id, exc.message)

    return store.get_order(order_id), summary
