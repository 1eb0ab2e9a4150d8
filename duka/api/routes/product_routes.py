# duka/api/routes/product_routes.py
from flask import Blueprint, jsonify, request

from duka.errors import NotFoundError
from duka.extensions import get_store

api_products = Blueprint("api_products", __name__, url_prefix="/api/products")


@api_products.get("")
def list_products():
    category = (request.args.get("category") or "").strip().lower()
    q = (request.args.get("q") or "").strip().lower()
    in_stock = (request.args.get("inStock") or "").strip().lower() in ("1", "true", "yes")

    products = get_store().list_products()
    if category:
        products = [p for p in products if p.category == category]
    if q:
        products = [p for p in products if q in p.name.lower() or q in p.slug]
    if in_stock:
        products = [p for p in products if p.in_stock]

    return jsonify({"ok": True, "products": [p.to_dict() for p in products]})


@api_products.get("/<product_id>")
def get_product(product_id: str):
    product = get_store().get_product(product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return jsonify({"ok": True, "product": product.to_dict()})
