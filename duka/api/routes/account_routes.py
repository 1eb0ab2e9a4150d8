# duka/api/routes/account_routes.py
from flask import Blueprint, jsonify, request

from duka.domain.money import normalize_phone
from duka.errors import SchemaMismatchError
from duka.extensions import get_store
from duka.services.order_sync import refresh_order_payment_summary
from duka.services.payments import MIN_PHONE_DIGITS

account_bp = Blueprint("account_bp", __name__, url_prefix="/api/account")


@account_bp.get("/orders")
def my_orders():
    """Orders placed with a phone number; each one re-synced before it is shown."""
    phone = (request.args.get("phone") or "").strip()
    normalized = normalize_phone(phone)
    order_id = (request.args.get("order") or "").strip() or None

    if len(normalized) < MIN_PHONE_DIGITS:
        return jsonify({"ok": False, "error": "Weka namba ya simu uliotumia kuagiza."}), 400

    store = get_store()
    orders = store.list_orders_by_phone(normalized, order_id)
    if not orders:
        return jsonify({"ok": True, "orders": []})

    summaries = {o.id: refresh_order_payment_summary(store, o.id) for o in orders}
    try:
        payments = store.list_payments_for_orders([o.id for o in orders])
    except SchemaMismatchError:
        payments = {}

    out = []
    for order in orders:
        summary = summaries.get(order.id)
        if summary is not None:
            order.amount_paid = summary.amount_paid
            order.payment_status = summary.payment_status
            order.total = summary.total
        out.append(order.to_dict(payments=payments.get(order.id, [])))

    return jsonify({"ok": True, "orders": out})
