# duka/admin/routes.py
"""Admin JSON API. Every route requires the X-Admin-Password header."""
from datetime import datetime, time

from flask import current_app, jsonify, request
from flask_login import login_required

from duka.errors import MissingRelationError, NotFoundError
from duka.extensions import get_store
from duka.services.order_sync import refresh_order_payment_summary
from duka.services.payments import (
    PAYMENTS_NOT_MIGRATED,
    confirm_payment,
    record_manual_payment,
    reject_payment,
)
from duka.services.products import create_product, update_product

from . import admin_bp


@admin_bp.get("/orders")
@login_required
def admin_orders():
    try:
        limit = int(request.args.get("limit") or 500)
    except ValueError:
        limit = 500
    limit = max(1, min(limit, 2000))

    store = get_store()
    orders = store.list_orders(limit=limit)
    return jsonify({
        "ok": True,
        "source": store.kind,
        "orders": [o.to_dict() for o in orders],
    })


@admin_bp.get("/orders/<order_id>/payments")
@login_required
def admin_order_payments(order_id: str):
    store = get_store()
    if store.get_order(order_id) is None:
        raise NotFoundError("Order haijapatikana.")
    try:
        payments = store.list_payments(order_id)
    except MissingRelationError:
        raise MissingRelationError(PAYMENTS_NOT_MIGRATED, table="order_payments")

    summary = refresh_order_payment_summary(store, order_id)
    return jsonify({
        "ok": True,
        "payments": [p.to_dict() for p in payments],
        "summary": summary.to_dict() if summary else None,
    })


@admin_bp.post("/orders/<order_id>/payments")
@login_required
def admin_record_payment(order_id: str):
    data = request.get_json(force=True, silent=True) or {}
    outcome = record_manual_payment(
        get_store(),
        order_id,
        amount=data.get("amount"),
        notes=str(data.get("notes") or ""),
        reference=str(data.get("reference") or ""),
        hold_minutes=current_app.config.get("PAYMENT_PENDING_HOLD_MINUTES", 60),
    )
    current_app.logger.info("Admin recorded %s on order %s", outcome.payment.amount, order_id)
    return jsonify({
        "ok": True,
        "payment": outcome.payment.to_dict(),
        "summary": outcome.summary.to_dict() if outcome.summary else None,
    }), 201


@admin_bp.post("/payments/<payment_id>/confirm")
@login_required
def admin_confirm_payment(payment_id: str):
    payment, summary = confirm_payment(get_store(), payment_id)
    return jsonify({
        "ok": True,
        "payment": payment.to_dict(),
        "summary": summary.to_dict() if summary else None,
    })


@admin_bp.post("/payments/<payment_id>/reject")
@login_required
def admin_reject_payment(payment_id: str):
    data = request.get_json(force=True, silent=True) or {}
    payment, summary = reject_payment(get_store(), payment_id, reason=str(data.get("reason") or ""))
    return jsonify({
        "ok": True,
        "payment": payment.to_dict(),
        "summary": summary.to_dict() if summary else None,
    })


@admin_bp.get("/products")
@login_required
def admin_products():
    store = get_store()
    return jsonify({
        "ok": True,
        "source": store.kind,
        "products": [p.to_dict() for p in store.list_products()],
    })


@admin_bp.post("/products")
@login_required
def admin_create_product():
    data = request.get_json(force=True, silent=True) or {}
    product = create_product(get_store(), data)
    current_app.logger.info("Admin created product %s", product.id)
    return jsonify({"ok": True, "product": product.to_dict()}), 201


@admin_bp.patch("/products/<product_id>")
@login_required
def admin_update_product(product_id: str):
    data = request.get_json(force=True, silent=True) or {}
    product = update_product(get_store(), product_id, data)
    return jsonify({"ok": True, "product": product.to_dict()})


@admin_bp.get("/analytics")
@login_required
def admin_analytics():
    start_of_day = datetime.combine(datetime.utcnow().date(), time.min)
    counts = get_store().analytics_counts(start_of_day)
    return jsonify({"ok": True, **counts})
