# duka/domain/catalog.py
"""
Product catalog as seen by order placement.

The storefront pages own the full product content; orders only need the price,
the size/colour options and the quantity offers of a product.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .money import round_money


@dataclass(frozen=True)
class QuantityOffer:
    id: str
    title: str
    subtitle: str
    paid_units: int
    free_units: int
    badge: str = ""

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "id": self.id,
            "title": self.title,
            "subtitle": self.subtitle,
            "paidUnits": self.paid_units,
            "freeUnits": self.free_units,
        }
        if self.badge:
            out["badge"] = self.badge
        return out


CATEGORY_SLUGS = (
    "electronic",
    "fashion",
    "fashion-accessories",
    "hardware-automobile",
    "health-beauty",
    "home-living",
)

DEFAULT_QUANTITY_OFFERS = (
    QuantityOffer("buy-1", "Buy 1", "50% OFF", 1, 0),
    QuantityOffer("buy-2-get-1-free", "Buy 2 Get 1 Free", "MOST POPULAR", 2, 1, "MOST POPULAR"),
    QuantityOffer("buy-3-get-2-free", "Buy 3 Get 2 Free", "BEST VALUE", 3, 2, "BEST VALUE"),
)


def slugify(value: str) -> str:
    return re.sub(r"(^-|-$)+", "", re.sub(r"[^a-z0-9]+", "-", (value or "").strip().lower()))


def parse_option_list(value) -> List[str]:
    """Size/colour options: a list, a JSON list string, or comma/line separated text."""
    if isinstance(value, str):
        raw = value.strip()
        if raw.startswith("["):
            try:
                value = json.loads(raw)
            except ValueError:
                value = []
        else:
            value = re.split(r"\r?\n|,", raw)
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


def _to_int(value, default: int) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _offer_from(value: Dict[str, Any], index: int) -> Optional[QuantityOffer]:
    title = str(value.get("title") or "").strip()
    if not title:
        return None
    paid = max(1, _to_int(value.get("paidUnits", value.get("paid_units")), 1))
    free = max(0, _to_int(value.get("freeUnits", value.get("free_units")), 0))
    subtitle = str(value.get("subtitle") or "").strip() or f"{paid} PAID + {free} FREE"
    return QuantityOffer(
        id=slugify(str(value.get("id") or title)) or f"offer-{index + 1}",
        title=title,
        subtitle=subtitle,
        paid_units=paid,
        free_units=free,
        badge=str(value.get("badge") or "").strip(),
    )


def parse_quantity_offers(value) -> tuple:
    """
    Offers come from the admin as a JSON list, a JSON string, or lines of
    "title|paid|free|subtitle|badge". Anything unusable yields the defaults.
    """
    if isinstance(value, str):
        raw = value.strip()
        if raw.startswith("[") and raw.endswith("]"):
            try:
                return parse_quantity_offers(json.loads(raw))
            except ValueError:
                return DEFAULT_QUANTITY_OFFERS
        offers = []
        for index, line in enumerate(l for l in raw.splitlines() if l.strip()):
            parts = [p.strip() for p in line.split("|")][:5]
            if len(parts) < 3:
                continue
            title, paid, free, *rest = parts
            offer = _offer_from(
                {
                    "title": title,
                    "paidUnits": paid,
                    "freeUnits": free,
                    "subtitle": rest[0] if rest else "",
                    "badge": rest[1] if len(rest) > 1 else "",
                },
                index,
            )
            if offer:
                offers.append(offer)
        return tuple(offers) or DEFAULT_QUANTITY_OFFERS

    if isinstance(value, (list, tuple)):
        offers = [
            item if isinstance(item, QuantityOffer) else _offer_from(item, index)
            for index, item in enumerate(value)
            if isinstance(item, (dict, QuantityOffer))
        ]
        offers = [o for o in offers if o]
        return tuple(offers) or DEFAULT_QUANTITY_OFFERS

    return DEFAULT_QUANTITY_OFFERS


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    slug: str
    category: str
    original_price: Decimal
    sale_price: Decimal
    in_stock: bool = True
    rating: float = 0.0
    image: str = ""
    size_options: tuple = ()
    color_options: tuple = ()
    quantity_offers: tuple = DEFAULT_QUANTITY_OFFERS

    def find_offer(self, paid_units: int, free_units: int) -> Optional[QuantityOffer]:
        for offer in self.quantity_offers:
            if offer.paid_units == paid_units and offer.free_units == free_units:
                return offer
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "category": self.category,
            "originalPrice": float(self.original_price),
            "salePrice": float(self.sale_price),
            "inStock": self.in_stock,
            "rating": self.rating,
            "image": self.image,
            "sizeOptions": list(self.size_options),
            "colorOptions": list(self.color_options),
            "quantityOptions": [o.to_dict() for o in self.quantity_offers],
        }


def make_product(**kwargs) -> Product:
    kwargs["original_price"] = round_money(kwargs.get("original_price"))
    kwargs["sale_price"] = round_money(kwargs.get("sale_price"))
    kwargs.setdefault("slug", slugify(kwargs.get("name", "")))
    kwargs["size_options"] = tuple(kwargs.get("size_options") or ())
    kwargs["color_options"] = tuple(kwargs.get("color_options") or ())
    kwargs["quantity_offers"] = parse_quantity_offers(kwargs.get("quantity_offers"))
    return Product(**kwargs)


# Shipped so the in-memory mode has something to sell.
SEED_PRODUCTS: List[Product] = [
    make_product(
        id="smartwatch-t500",
        name="Smartwatch T500",
        category="electronic",
        original_price=90000,
        sale_price=45000,
        rating=4.6,
        color_options=["Black", "Pink"],
    ),
    make_product(
        id="wireless-earbuds-pro",
        name="Wireless Earbuds Pro",
        category="electronic",
        original_price=70000,
        sale_price=35000,
        rating=4.4,
    ),
    make_product(
        id="ladies-kitenge-dress",
        name="Ladies Kitenge Dress",
        category="fashion",
        original_price=60000,
        sale_price=40000,
        rating=4.8,
        size_options=["S", "M", "L", "XL"],
        color_options=["Blue", "Red"],
    ),
    make_product(
        id="car-vacuum-cleaner",
        name="Car Vacuum Cleaner",
        category="hardware-automobile",
        original_price=80000,
        sale_price=50000,
        in_stock=False,
        rating=4.1,
    ),
]
