# duka/store/rows.py
"""Turn raw table rows (dicts) into records, tolerating older row shapes."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from duka.domain.catalog import make_product, parse_option_list
from duka.domain.money import ZERO, normalize_phone, round_money
from duka.domain.payment_status import parse_payment_method, parse_payment_status
from duka.domain.records import (
    OrderLineItem,
    OrderRecord,
    OrderStatus,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    ReviewRecord,
)


def _text(value, default: str = "") -> str:
    if value is None:
        return default
    return str(value).strip()


def _int(value, default: int) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _pick(item: Mapping[str, Any], *keys):
    for key in keys:
        if item.get(key) is not None:
            return item.get(key)
    return None


def _as_datetime(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _line_from(item: Mapping[str, Any], index: int) -> Optional[OrderLineItem]:
    product_id = _text(_pick(item, "productId", "product_id"))
    product_name = _text(_pick(item, "productName", "product_name"))
    if not (product_id and product_name):
        return None

    quantity = max(1, _int(item.get("quantity"), 1))
    line_subtotal = round_money(_pick(item, "lineSubtotal", "line_subtotal"))
    unit_price = _pick(item, "unitPrice", "unit_price")
    return OrderLineItem(
        id=_text(item.get("id")) or f"{product_id}-{index + 1}",
        product_id=product_id,
        product_name=product_name,
        quantity=quantity,
        paid_quantity=max(1, _int(_pick(item, "paidQuantity", "paid_quantity"), quantity)),
        free_quantity=max(0, _int(_pick(item, "freeQuantity", "free_quantity"), 0)),
        unit_price=round_money(unit_price) if unit_price is not None else round_money(line_subtotal / quantity),
        original_unit_price=round_money(_pick(item, "originalUnitPrice", "original_unit_price")),
        line_subtotal=line_subtotal,
        line_original_total=round_money(
            _pick(item, "lineOriginalTotal", "line_original_total") or line_subtotal
        ),
        selected_size=_text(_pick(item, "selectedSize", "selected_size")),
        selected_color=_text(_pick(item, "selectedColor", "selected_color")),
    )


def _parse_lines(value) -> List[OrderLineItem]:
    if not isinstance(value, list):
        return []
    lines = [_line_from(entry, i) for i, entry in enumerate(value) if isinstance(entry, dict)]
    return [line for line in lines if line is not None]


def order_items_from_row(row: Mapping[str, Any]) -> List[OrderLineItem]:
    """
    Line items from the order_items column (list or JSON text); rows written
    before line items existed get one line synthesized from the flat columns.
    """
    raw = _pick(row, "order_items", "orderItems")

    lines = _parse_lines(raw)
    if lines:
        return lines

    if isinstance(raw, str):
        try:
            lines = _parse_lines(json.loads(raw))
        except ValueError:
            lines = []
        if lines:
            return lines

    product_id = _text(_pick(row, "product_id", "productId"))
    quantity = max(1, _int(row.get("quantity"), 1))
    subtotal = round_money(_pick(row, "subtotal", "total"))
    unit = round_money(subtotal / quantity)
    return [
        OrderLineItem(
            id=f"{product_id or 'item'}-1",
            product_id=product_id,
            product_name=_text(_pick(row, "product_name", "productName")) or "Bidhaa",
            quantity=quantity,
            paid_quantity=quantity,
            free_quantity=0,
            unit_price=unit,
            original_unit_price=unit,
            line_subtotal=subtotal,
            line_original_total=subtotal,
            selected_size=_text(row.get("selected_size")),
            selected_color=_text(row.get("selected_color")),
        )
    ]


def order_from_row(row: Mapping[str, Any]) -> OrderRecord:
    total = round_money(row.get("total"))
    shipping_fee = round_money(row.get("shipping_fee"))
    subtotal = row.get("subtotal")
    subtotal = round_money(subtotal) if subtotal is not None else round_money(max(ZERO, total - shipping_fee))

    payment_method = parse_payment_method(row.get("payment_method"))
    # legacy rows have neither column; the order's own status is all we have
    payment_status = parse_payment_status(row.get("payment_status")) or (
        PaymentStatus.UNPAID if payment_method == PaymentMethod.CASH_ON_DELIVERY else PaymentStatus.PENDING
    )
    try:
        status = OrderStatus(_text(row.get("status"), "pending"))
    except ValueError:
        status = OrderStatus.PENDING

    phone = _text(row.get("phone"))
    return OrderRecord(
        id=_text(row.get("id")),
        full_name=_text(row.get("full_name")),
        phone=phone,
        phone_normalized=_text(row.get("phone_normalized")) or normalize_phone(phone),
        region_city=_text(row.get("region_city")),
        address=_text(row.get("address")),
        order_items=order_items_from_row(row),
        subtotal=subtotal,
        shipping_fee=shipping_fee,
        total=total,
        payment_method=payment_method,
        payment_status=payment_status,
        status=status,
        amount_paid=round_money(row.get("amount_paid")),
        shipping_label=_text(row.get("shipping_label")),
        shipping_adjustment=round_money(row.get("shipping_adjustment")),
        shipping_adjustment_note=_text(row.get("shipping_adjustment_note")),
        installment_enabled=bool(row.get("installment_enabled") or False),
        deposit_amount=round_money(row.get("deposit_amount")),
        installment_notes=_text(row.get("installment_notes")),
        payment_reference=_text(row.get("payment_reference")),
        payment_tracking_id=_text(row.get("payment_tracking_id")),
        created_at=_as_datetime(row.get("created_at")) or datetime.utcnow(),
        last_payment_at=_as_datetime(row.get("last_payment_at")),
    )


def order_to_row(order: OrderRecord) -> Dict[str, Any]:
    """Full column set of the current orders schema."""
    return {
        "id": order.id,
        "product_id": order.product_id,
        "product_name": order.product_name,
        "quantity": order.quantity,
        "order_items": [item.to_row() for item in order.order_items],
        "full_name": order.full_name,
        "phone": order.phone,
        "phone_normalized": order.phone_normalized,
        "region_city": order.region_city,
        "address": order.address,
        "selected_size": order.order_items[0].selected_size if order.order_items else "",
        "selected_color": order.order_items[0].selected_color if order.order_items else "",
        "payment_method": order.payment_method.value,
        "payment_status": order.payment_status.value,
        "installment_enabled": order.installment_enabled,
        "deposit_amount": order.deposit_amount,
        "installment_notes": order.installment_notes,
        "subtotal": order.subtotal,
        "shipping_fee": order.shipping_fee,
        "shipping_label": order.shipping_label,
        "shipping_adjustment": order.shipping_adjustment,
        "shipping_adjustment_note": order.shipping_adjustment_note,
        "amount_paid": order.amount_paid,
        "payment_reference": order.payment_reference,
        "payment_tracking_id": order.payment_tracking_id,
        "last_payment_at": order.last_payment_at,
        "status": order.status.value,
        "total": order.total,
        "created_at": order.created_at,
    }


def payment_from_row(row: Mapping[str, Any]) -> PaymentRecord:
    return PaymentRecord(
        id=_text(row.get("id")),
        order_id=_text(row.get("order_id")),
        amount=round_money(row.get("amount")),
        method=parse_payment_method(row.get("method"), default=PaymentMethod.MANUAL),
        status=parse_payment_status(row.get("status")) or PaymentStatus.PENDING,
        reference=_text(row.get("reference")),
        tracking_id=_text(row.get("tracking_id")),
        notes=_text(row.get("notes")),
        created_at=_as_datetime(row.get("created_at")) or datetime.utcnow(),
        paid_at=_as_datetime(row.get("paid_at")),
    )


def payment_to_row(payment: PaymentRecord) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "order_id": payment.order_id,
        "amount": payment.amount,
        "method": payment.method.value,
        "status": payment.status.value,
        "reference": payment.reference or None,
        "tracking_id": payment.tracking_id or None,
        "notes": payment.notes or None,
        "paid_at": payment.paid_at,
        "created_at": payment.created_at,
    }


def review_from_row(row: Mapping[str, Any]) -> ReviewRecord:
    return ReviewRecord(
        id=_text(row.get("id")),
        order_id=_text(row.get("order_id")),
        product_id=_text(row.get("product_id")),
        rating=_int(row.get("rating"), 5),
        comment=_text(row.get("comment")),
        customer_name=_text(row.get("customer_name")),
        created_at=_as_datetime(row.get("created_at")) or datetime.utcnow(),
    )


def product_from_row(row: Mapping[str, Any]):
    return make_product(
        id=_text(row.get("id")),
        name=_text(row.get("name")),
        slug=_text(row.get("slug")) or _text(row.get("id")),
        category=_text(row.get("category"), "electronic"),
        original_price=row.get("original_price"),
        sale_price=row.get("sale_price"),
        in_stock=row.get("in_stock") is not False,
        rating=float(row.get("rating") or 0),
        image=_text(row.get("image")),
        size_options=parse_option_list(row.get("size_options")),
        color_options=parse_option_list(row.get("color_options")),
        quantity_offers=row.get("quantity_options"),
    )


def product_to_row(product) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "slug": product.slug or None,
        "category": product.category,
        "original_price": round_money(product.original_price),
        "sale_price": round_money(product.sale_price),
        "in_stock": bool(product.in_stock),
        "rating": float(product.rating),
        "image": product.image or None,
        "size_options": list(product.size_options),
        "color_options": list(product.color_options),
        "quantity_options": [o.to_dict() for o in product.quantity_offers],
    }
