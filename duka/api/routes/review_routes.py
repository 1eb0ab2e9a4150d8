# duka/api/routes/review_routes.py
from flask import Blueprint, jsonify, request

from duka.domain.records import OrderStatus, ReviewRecord, new_id
from duka.errors import ConflictError, NotFoundError, ValidationError
from duka.extensions import get_store

review_bp = Blueprint("review_bp", __name__, url_prefix="/api/reviews")


def _rating(value) -> int:
    try:
        rating = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid review data")
    if rating != rating:  # NaN
        raise ValidationError("Invalid review data")
    return int(round(max(1.0, min(5.0, rating))))


@review_bp.get("")
def list_reviews():
    product_id = (request.args.get("productId") or "").strip() or None
    reviews = get_store().list_reviews(product_id)
    return jsonify({"ok": True, "reviews": [r.to_dict() for r in reviews]})


@review_bp.post("")
def create_review():
    data = request.get_json(force=True, silent=True) or {}
    order_id = str(data.get("orderId") or "").strip()
    comment = str(data.get("comment") or "").strip()
    customer_name = str(data.get("customerName") or "").strip()
    if not order_id or not comment:
        raise ValidationError("Invalid review data")
    rating = _rating(data.get("rating"))

    store = get_store()
    order = store.get_order(order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if order.status != OrderStatus.DELIVERED:
        raise ValidationError("Review inaruhusiwa baada ya oda kuwa delivered.")
    if store.get_review_for_order(order_id) is not None:
        raise ConflictError("Review ya oda hii tayari ipo.")

    review = ReviewRecord(
        id=new_id(),
        order_id=order_id,
        product_id=order.product_id,
        rating=rating,
        comment=comment,
        customer_name=customer_name or order.full_name or "Customer",
    )
    store.insert_review(review)
    return jsonify({"ok": True, "review": review.to_dict()}), 201
