# duka/api/routes/payment_routes.py
"""Pesapal redirects the customer to the callback and notifies the IPN URL."""
import urllib.parse

from flask import Blueprint, current_app, jsonify, redirect, request

from duka.errors import DukaError
from duka.extensions import get_gateway, get_store, rollback_session
from duka.services.payments import apply_gateway_settlement

payment_bp = Blueprint("payment_bp", __name__, url_prefix="/api/payments")


def _pick(*keys) -> str:
    for key in keys:
        value = (request.values.get(key) or "").strip()
        if value:
            return value
    return ""


def _params():
    return {
        "tracking_id": _pick("OrderTrackingId", "orderTrackingId", "trackingId"),
        "merchant_reference": _pick("OrderMerchantReference", "merchantReference", "id"),
        "order_id": _pick("order", "orderId", "OrderId"),
        "payment_id": _pick("payment", "paymentId", "PaymentId"),
    }


def _thank_you(order_id: str, status: str):
    query = urllib.parse.urlencode({"order": order_id or "unknown", "payment": "pesapal", "status": status})
    return redirect(f"{current_app.config['SITE_URL'].rstrip('/')}/thank-you?{query}")


@payment_bp.get("/gateway/callback")
@payment_bp.get("/pesapal/callback")
def gateway_callback():
    p = _params()
    if not p["tracking_id"]:
        return _thank_you(p["order_id"], "failed")

    try:
        settlement = apply_gateway_settlement(get_store(), get_gateway(), **p)
    except DukaError as e:
        current_app.logger.warning("Pesapal callback for %s failed: %s", p["tracking_id"], e.message)
        return _thank_you(p["order_id"], "failed")
    except Exception:
        rollback_session()
        current_app.logger.exception("Pesapal callback for %s crashed", p["tracking_id"])
        return _thank_you(p["order_id"], "failed")

    return _thank_you(settlement.order_id or p["order_id"], settlement.payment_status)


@payment_bp.route("/gateway/ipn", methods=["GET", "POST"])
@payment_bp.route("/pesapal/ipn", methods=["GET", "POST"])
def gateway_ipn():
    p = _params()
    if not p["tracking_id"]:
        return jsonify({"ok": False, "received": False, "error": "Missing tracking id"}), 400

    try:
        settlement = apply_gateway_settlement(get_store(), get_gateway(), **p)
    except Exception as e:
        rollback_session()
        current_app.logger.exception("Pesapal IPN for %s failed", p["tracking_id"])
        message = e.message if isinstance(e, DukaError) else "Unable to process notification"
        return jsonify({"ok": False, "received": False, "error": message}), 500

    return jsonify({
        "ok": True,
        "received": True,
        "orderId": settlement.order_id,
        "paymentId": settlement.payment_id,
        "trackingId": settlement.tracking_id,
        "paymentStatus": settlement.payment_status,
        "orderNotificationType": "IPNCHANGE",
        "orderTrackingId": settlement.tracking_id,
        "orderMerchantReference": p["merchant_reference"] or settlement.payment_id,
        "status": 200,
    })
