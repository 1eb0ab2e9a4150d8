# duka/api/routes/order_routes.py
from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from duka.extensions import get_gateway, get_store
from duka.services.notifications import notify_order_placed
from duka.services.orders import place_order, update_order_admin
from duka.services.payments import create_balance_payment

order_bp = Blueprint("order_bp", __name__, url_prefix="/api/orders")


def _callback_base() -> str:
    return current_app.config.get("PUBLIC_API_URL") or request.host_url


@order_bp.post("")
def create_order():
    data = request.get_json(force=True, silent=True) or {}

    placed = place_order(get_store(), get_gateway(), data, callback_base=_callback_base())
    notify_order_placed(placed.order)

    out = {
        "ok": True,
        "id": placed.order.id,
        "status": placed.status,
        "paymentMethod": placed.order.payment_method.value,
    }
    if placed.payment_url:
        out["paymentUrl"] = placed.payment_url
        out["paymentTrackingId"] = placed.tracking_id
    if placed.payment is not None:
        out["paymentId"] = placed.payment.id
    return jsonify(out), 201


@order_bp.post("/<order_id>/payments")
def create_order_payment(order_id: str):
    data = request.get_json(force=True, silent=True) or {}

    outcome = create_balance_payment(
        get_store(),
        get_gateway(),
        order_id,
        phone=str(data.get("phone") or ""),
        amount=data.get("amount"),
        method=data.get("method"),
        notes=str(data.get("notes") or ""),
        callback_base=_callback_base(),
        hold_minutes=current_app.config.get("PAYMENT_PENDING_HOLD_MINUTES", 60),
    )

    if outcome.status == "payment_required":
        return jsonify({
            "ok": True,
            "status": "payment_required",
            "paymentUrl": outcome.payment_url,
            "paymentId": outcome.payment.id,
            "trackingId": outcome.tracking_id,
        })

    return jsonify({
        "ok": True,
        "status": "recorded",
        "message": "Payment imehifadhiwa ikiwa pending verification.",
        "paymentId": outcome.payment.id,
        "order": outcome.summary.to_dict() if outcome.summary else None,
    })


def _admin_update(order_id: str, data: dict):
    order, summary = update_order_admin(
        get_store(),
        order_id,
        status=data.get("status"),
        payment_status=data.get("paymentStatus"),
        shipping_adjustment=data.get("shippingAdjustment"),
        shipping_adjustment_note=data.get("shippingAdjustmentNote"),
    )
    current_app.logger.info("Admin set order %s to %s", order_id, order.status.value if order else "?")
    return jsonify({
        "ok": True,
        "order": order.to_dict() if order else None,
        "summary": summary.to_dict() if summary else None,
    })


@order_bp.patch("/<order_id>")
@login_required
def update_order(order_id: str):
    return _admin_update(order_id, request.get_json(force=True, silent=True) or {})


@order_bp.patch("")
@login_required
def update_order_from_body():
    data = request.get_json(force=True, silent=True) or {}
    order_id = str(data.get("orderId") or "").strip()
    if not order_id:
        return jsonify({"ok": False, "error": "Invalid payload"}), 400
    return _admin_update(order_id, data)
