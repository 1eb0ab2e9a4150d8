# duka/services/notifications.py
"""Owner alerts for new orders. Best-effort: failures are logged, never raised."""
from __future__ import annotations

from flask import current_app

from duka.api.utils.email import send_email
from duka.api.utils.sms import send_sms
from duka.domain.money import format_tzs
from duka.domain.records import OrderRecord, PaymentMethod

_METHOD_LABELS = {
    PaymentMethod.BANK_DEPOSIT: "Bank Deposit",
    PaymentMethod.PESAPAL: "Pesapal",
    PaymentMethod.CASH_ON_DELIVERY: "Cash on Delivery",
    PaymentMethod.MANUAL: "Manual",
}


def payment_method_label(method: PaymentMethod) -> str:
    return _METHOD_LABELS.get(method, "Cash on Delivery")


def order_sms_text(order: OrderRecord) -> str:
    count = len(order.order_items)
    return "\n".join(
        [
            "New order placed",
            f"ID: {order.id}",
            f"Customer: {order.full_name} ({order.phone})",
            f"Total: {format_tzs(order.total)}",
            f"Payment: {payment_method_label(order.payment_method)} ({order.payment_status.value})",
            f"Location: {order.region_city}",
            f"Items: {count} {'item' if count == 1 else 'items'}",
        ]
    )


def order_email_body(order: OrderRecord) -> str:
    lines = [
        f"Order {order.id}",
        f"Customer: {order.full_name} ({order.phone})",
        f"Address: {order.address}, {order.region_city}",
        "",
        "Items:",
    ]
    for item in order.order_items:
        extras = ", ".join(v for v in (item.selected_size, item.selected_color) if v)
        free = f" (+{item.free_quantity} free)" if item.free_quantity else ""
        lines.append(
            f"- {item.product_name} x {item.paid_quantity}{free}"
            f"{f' [{extras}]' if extras else ''}: {format_tzs(item.line_subtotal)}"
        )
    lines += [
        "",
        f"Subtotal: {format_tzs(order.subtotal)}",
        f"Shipping ({order.shipping_label or '-'}): {format_tzs(order.shipping_fee)}",
        f"Total: {format_tzs(order.total)}",
        f"Payment: {payment_method_label(order.payment_method)} ({order.payment_status.value})",
    ]
    if order.installment_enabled:
        lines.append(f"Deposit: {format_tzs(order.deposit_amount)}")
        if order.installment_notes:
            lines.append(f"Installment notes: {order.installment_notes}")
    return "\n".join(lines)


def notify_order_placed(order: OrderRecord) -> None:
    try:
        send_sms(order_sms_text(order))
    except Exception:
        current_app.logger.exception("Order SMS alert failed (order %s)", order.id)

    owner = current_app.config.get("ORDER_NOTIFY_EMAIL")
    if not owner:
        return
    try:
        send_email(
            subject=f"New order {order.id[:8]} - {format_tzs(order.total)}",
            recipients=[owner],
            body=order_email_body(order),
        )
    except Exception:
        current_app.logger.exception("Owner e-mail failed (order %s)", order.id)
