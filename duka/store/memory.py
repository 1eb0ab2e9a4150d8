# duka/store/memory.py
"""
Process-local store used when no database is configured.

Lives exactly as long as the app instance that owns it; nothing is written
to disk. Records are copied on the way in and out so callers cannot mutate
the stored state behind the store's back.
"""
from __future__ import annotations

import copy
import threading
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from duka.domain.catalog import SEED_PRODUCTS
from duka.domain.money import (
    compute_amount_paid_from_payments,
    compute_held_amount,
    round_money,
)
from duka.domain.records import (
    OrderRecord,
    OrderStatus,
    PaymentRecord,
    PaymentStatus,
    ReviewRecord,
    SignupRecord,
    VisitRecord,
)
from duka.errors import BalanceExceededError, ConflictError, StoreError

from .base import OrderStore

_ORDER_FIELDS = {"status", "payment_status", "shipping_adjustment", "shipping_adjustment_note", "total"}


class MemoryOrderStore(OrderStore):
    kind = "memory"

    def __init__(self, products=None):
        super().__init__()
        self._lock = threading.RLock()
        self._orders: Dict[str, OrderRecord] = {}
        self._payments: List[PaymentRecord] = []
        self._reviews: List[ReviewRecord] = []
        self._signups: List[SignupRecord] = []
        self._visits: List[VisitRecord] = []
        self._products = {p.id: p for p in (SEED_PRODUCTS if products is None else products)}

    # --- orders ---------------------------------------------------------
    def insert_order(self, order):
        with self._lock:
            if order.id in self._orders:
                raise StoreError(f"Order {order.id} already exists")
            self._orders[order.id] = copy.deepcopy(order)
        return copy.deepcopy(order)

    def get_order(self, order_id):
        with self._lock:
            order = self._orders.get(str(order_id))
            return copy.deepcopy(order) if order else None

    def list_orders_by_phone(self, phone_normalized, order_id=None):
        with self._lock:
            found = [
                o for o in self._orders.values()
                if o.phone_normalized == phone_normalized and (not order_id or o.id == order_id)
            ]
            found.sort(key=lambda o: o.created_at, reverse=True)
            return copy.deepcopy(found)

    def list_orders(self, limit=None):
        with self._lock:
            found = sorted(self._orders.values(), key=lambda o: o.created_at, reverse=True)
            return copy.deepcopy(found[:limit] if limit else found)

    def delete_order(self, order_id):
        with self._lock:
            if self._orders.pop(str(order_id), None) is None:
                return False
            self._payments = [p for p in self._payments if p.order_id != str(order_id)]
            return True

    def update_order(self, order_id, **fields):
        unknown = set(fields) - _ORDER_FIELDS
        if unknown:
            raise StoreError(f"Cannot update order fields: {', '.join(sorted(unknown))}")

        with self._lock:
            order = self._orders.get(str(order_id))
            if order is None:
                return False
            if "status" in fields:
                order.status = OrderStatus(getattr(fields["status"], "value", fields["status"]))
            if "payment_status" in fields:
                order.payment_status = PaymentStatus(
                    getattr(fields["payment_status"], "value", fields["payment_status"])
                )
            if "shipping_adjustment" in fields:
                order.shipping_adjustment = round_money(fields["shipping_adjustment"])
            if "shipping_adjustment_note" in fields:
                order.shipping_adjustment_note = fields["shipping_adjustment_note"] or ""
            if "total" in fields:
                order.total = round_money(fields["total"])
            return True

    def save_payment_summary(self, order_id, amount_paid, payment_status, last_payment_at):
        with self._lock:
            order = self._orders.get(str(order_id))
            if order is None:
                return
            order.amount_paid = round_money(amount_paid)
            order.payment_status = payment_status
            order.last_payment_at = last_payment_at

    # --- payments -------------------------------------------------------
    def insert_payment(self, record, ceiling=None, hold_cutoff=None, include_held=True):
        with self._lock:
            if record.order_id not in self._orders:
                raise StoreError(f"Order {record.order_id} does not exist")

            if ceiling is not None:
                existing = [p for p in self._payments if p.order_id == record.order_id]
                claimed = compute_amount_paid_from_payments(existing)
                if include_held:
                    claimed += compute_held_amount(existing, hold_cutoff)
                if claimed + round_money(record.amount) > round_money(ceiling):
                    raise BalanceExceededError(
                        "Amount exceeds the remaining balance of this order.",
                        balance_due=max(round_money(ceiling) - claimed, Decimal("0")),
                    )

            self._payments.append(copy.deepcopy(record))
        return copy.deepcopy(record)

    def _payments_of(self, order_id: str) -> List[PaymentRecord]:
        # appended in creation order; reversed for newest first
        return [p for p in reversed(self._payments) if p.order_id == order_id]

    def list_payments(self, order_id):
        with self._lock:
            found = self._payments_of(str(order_id))
            found.sort(key=lambda p: p.created_at, reverse=True)
            return copy.deepcopy(found)

    def list_payments_for_orders(self, order_ids: Iterable[str]):
        with self._lock:
            return {order_id: self.list_payments(order_id) for order_id in order_ids}

    def get_payment(self, payment_id):
        with self._lock:
            for payment in self._payments:
                if payment.id == payment_id:
                    return copy.deepcopy(payment)
        return None

    def find_payment_by_tracking(self, tracking_id):
        if not tracking_id:
            return None
        with self._lock:
            for payment in reversed(self._payments):
                if payment.tracking_id == tracking_id:
                    return copy.deepcopy(payment)
        return None

    def update_payment(self, payment_id, status, paid_at=None, tracking_id=None, reference=None):
        with self._lock:
            for payment in self._payments:
                if payment.id != payment_id:
                    continue
                payment.status = status
                payment.paid_at = paid_at
                if tracking_id:
                    payment.tracking_id = tracking_id
                if reference:
                    payment.reference = reference
                return copy.deepcopy(payment)
        return None

    # --- reviews / analytics / catalog -----------------------------------
    def insert_review(self, review):
        with self._lock:
            if any(r.order_id == review.order_id for r in self._reviews):
                raise ConflictError("Review ya oda hii tayari ipo.")
            self._reviews.append(copy.deepcopy(review))
        return copy.deepcopy(review)

    def get_review_for_order(self, order_id):
        with self._lock:
            for review in self._reviews:
                if review.order_id == order_id:
                    return copy.deepcopy(review)
        return None

    def list_reviews(self, product_id=None):
        with self._lock:
            found = [r for r in self._reviews if not product_id or r.product_id == product_id]
            found.sort(key=lambda r: r.created_at, reverse=True)
            return copy.deepcopy(found)

    def insert_signup(self, signup):
        with self._lock:
            self._signups.append(copy.deepcopy(signup))
        return signup

    def insert_visit(self, visit):
        with self._lock:
            self._visits.append(copy.deepcopy(visit))
        return visit

    def analytics_counts(self, since: datetime):
        with self._lock:
            return {
                "totalViews": len(self._visits),
                "todayViews": sum(1 for v in self._visits if v.created_at >= since),
                "totalSignups": len(self._signups),
            }

    def list_products(self):
        with self._lock:
            return list(self._products.values())

    def get_product(self, product_id):
        with self._lock:
            return self._products.get(product_id)

    def save_product(self, product):
        with self._lock:
            self._products[product.id] = product
        return product
