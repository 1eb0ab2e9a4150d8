# duka/domain/shipping.py
"""Delivery fee table: Dar es Salaam areas from the courier sheet, flat rate upcountry."""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal

DAR_RATE_INCREASE_THRESHOLD = 4000
DAR_RATE_INCREMENT = 1000
UPCOUNTRY_FLAT_FEE = Decimal("10000")

_DAR_RATES_FROM_SHEET = (
    ("Area 1 Bibi Titi / Morogoro", 3000),
    ("Area 2 Uhuru St", 3000),
    ("Area 3 Nyerere 1", 3000),
    ("Area 4 Nyerere 2", 5000),
    ("Area 5 Mandela Rd", 8000),
    ("Area 6 Morogoro 1", 4000),
    ("Area 7 Morogoro 2", 5000),
    ("Area 8 Bagamoyo 1", 4000),
    ("Area 9 Bagamoyo 2", 9000),
    ("Area 10 Bagamoyo 3", 23000),
    ("Area 11 Kilwa Rd 1", 7000),
    ("Area 12 Kilwa Rd 2", 10000),
    ("Area 13 Nyerere 3", 7000),
    ("Area 14 Nyerere 4", 20000),
    ("Area 15 Morogoro 3", 9000),
    ("Area 16 Morogoro 4", 25000),
    ("Area 18 Kigamboni 1", 10000),
    ("Mbezi (Mpigi Magoye route)", 20000),
)

_DAR_KEYWORDS = ("dar", "dar es salaam", "dsm", "kinondoni", "ilala", "temeke", "ubungo", "kigamboni")
_GENERIC_TOKENS = {"area", "route", "road", "rd", "st", "street", "dar", "es", "salaam", "dsm"}


def _adjust(fee: int) -> int:
    return fee + DAR_RATE_INCREMENT if fee >= DAR_RATE_INCREASE_THRESHOLD else fee


DAR_DELIVERY_RATES = tuple((area, Decimal(_adjust(fee))) for area, fee in _DAR_RATES_FROM_SHEET)
DAR_MIN_FEE = min(fee for _, fee in DAR_DELIVERY_RATES)


@dataclass(frozen=True)
class ShippingEstimate:
    fee: Decimal
    region_label: str
    matched_area: str
    is_dar: bool

    @property
    def label(self) -> str:
        return f"{self.region_label} - {self.matched_area}"


def _normalize(value: str) -> str:
    value = re.sub(r"[^a-z0-9\s]+", " ", (value or "").lower())
    return re.sub(r"\s+", " ", value).strip()


def _tokens(value: str) -> list[str]:
    return [t for t in _normalize(value).split(" ") if len(t) > 1 and t not in _GENERIC_TOKENS]


def calculate_shipping_fee(region_city: str, address: str = "") -> ShippingEstimate:
    location = _normalize(f"{region_city} {address or ''}")

    if not any(k in location for k in _DAR_KEYWORDS):
        return ShippingEstimate(UPCOUNTRY_FLAT_FEE, "Mikoa (Outside Dar)", "Flat Rate", False)

    best, best_score = None, 0
    for area, fee in DAR_DELIVERY_RATES:
        score = sum(1 for token in _tokens(area) if token in location)
        if score > best_score:
            best, best_score = (area, fee), score

    if best:
        return ShippingEstimate(best[1], "Dar es Salaam", best[0], True)
    return ShippingEstimate(DAR_MIN_FEE, "Dar es Salaam", "Standard Dar Rate", True)
