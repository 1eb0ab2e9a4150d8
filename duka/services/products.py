# duka/services/products.py
"""Admin product create/update."""
from __future__ import annotations

import logging
from typing import Any, Dict

from duka.domain.catalog import CATEGORY_SLUGS, make_product, parse_option_list, slugify
from duka.domain.money import round_money
from duka.errors import ConflictError, NotFoundError, ValidationError

log = logging.getLogger(__name__)

DEFAULT_RATING = 4.5
FALLBACK_IMAGE = "/placeholder.svg"


def _asset_path(value) -> str:
    text = str(value or "").strip()
    if not text:
        return FALLBACK_IMAGE
    if text.startswith(("http://", "https://", "/")):
        return text
    return f"/{text}"


def _rating(value) -> float:
    try:
        rating = float(DEFAULT_RATING if value is None or value == "" else value)
    except (TypeError, ValueError):
        rating = DEFAULT_RATING
    return max(0.0, min(5.0, rating))


def _in_stock(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no", "off")
    return bool(value)


def parse_product_payload(data: Dict[str, Any], product_id: str = ""):
    """
    Build a Product from the admin form. Name, a known category and
    0 < salePrice <= originalPrice are required.
    """
    name = str(data.get("name") or "").strip()
    category = str(data.get("category") or "").strip()
    original_price = round_money(data.get("originalPrice"))
    sale_price = round_money(data.get("salePrice"))

    if (
        not name
        or category not in CATEGORY_SLUGS
        or original_price <= 0
        or sale_price <= 0
        or sale_price > original_price
    ):
        raise ValidationError("Invalid product data")

    product_id = product_id or slugify(name)
    if not product_id:
        raise ValidationError("Invalid product data")

    return make_product(
        id=product_id,
        name=name,
        category=category,
        original_price=original_price,
        sale_price=sale_price,
        in_stock=_in_stock(data.get("inStock")),
        rating=_rating(data.get("rating")),
        image=_asset_path(data.get("image")),
        size_options=parse_option_list(data.get("sizeOptions")),
        color_options=parse_option_list(data.get("colorOptions")),
        quantity_offers=data.get("quantityOptions"),
    )


def create_product(store, data: Dict[str, Any]):
    product = parse_product_payload(data, str(data.get("id") or "").strip())
    if store.get_product(product.id) is not None:
        raise ConflictError(f"Product {product.id} already exists.")
    store.save_product(product)
    log.info("Product %s created (%s)", product.id, product.category)
    return product


def update_product(store, product_id: str, data: Dict[str, Any]):
    if store.get_product(product_id) is None:
        raise NotFoundError("Product not found")
    product = parse_product_payload(data, product_id)
    store.save_product(product)
    log.info("Product %s updated", product.id)
    return product
