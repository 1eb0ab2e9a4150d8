# duka/store/base.py
"""
The order store contract.

Services and routes talk to an OrderStore only; whether the rows live in a
database or in process memory is decided once, in create_app.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from duka.domain.records import (
    OrderRecord,
    PaymentRecord,
    PaymentStatus,
    ReviewRecord,
    SignupRecord,
    VisitRecord,
)

# columns an order row is guaranteed to have, even on the oldest schema
LEGACY_ORDER_COLUMNS = (
    "id",
    "product_id",
    "product_name",
    "quantity",
    "full_name",
    "phone",
    "region_city",
    "address",
    "status",
    "total",
    "created_at",
)

ORDER_COLUMNS = LEGACY_ORDER_COLUMNS + (
    "order_items",
    "phone_normalized",
    "selected_size",
    "selected_color",
    "payment_method",
    "payment_status",
    "installment_enabled",
    "deposit_amount",
    "installment_notes",
    "subtotal",
    "shipping_fee",
    "shipping_label",
    "shipping_adjustment",
    "shipping_adjustment_note",
    "amount_paid",
    "payment_reference",
    "payment_tracking_id",
    "last_payment_at",
)


class KeyedLocks:
    """One mutex per key while anyone holds or waits for it."""

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, holders and waiters]
        self._locks: Dict[str, list] = {}

    def __len__(self):
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if not entry[1]:
                    del self._locks[key]


class OrderStore:
    """Base class for the two store backends."""

    kind = "abstract"

    def __init__(self):
        self._order_locks = KeyedLocks()

    def order_lock(self, order_id: str):
        """Serializes balance checks and payment inserts for one order."""
        return self._order_locks.hold(str(order_id))

    # --- orders ---------------------------------------------------------
    def insert_order(self, order: OrderRecord) -> OrderRecord:
        raise NotImplementedError

    def get_order(self, order_id: str) -> Optional[OrderRecord]:
        raise NotImplementedError

    def list_orders_by_phone(self, phone_normalized: str, order_id: Optional[str] = None) -> List[OrderRecord]:
        raise NotImplementedError

    def list_orders(self, limit: Optional[int] = None) -> List[OrderRecord]:
        raise NotImplementedError

    def delete_order(self, order_id: str) -> bool:
        """Drop an order and its payments. Used to undo a half-placed order."""
        raise NotImplementedError

    def update_order(self, order_id: str, **fields) -> bool:
        """
        Update fulfillment fields (status, payment_status, shipping_adjustment,
        shipping_adjustment_note, total). Returns False for an unknown order.
        """
        raise NotImplementedError

    def save_payment_summary(
        self,
        order_id: str,
        amount_paid: Decimal,
        payment_status: PaymentStatus,
        last_payment_at: Optional[datetime],
    ) -> None:
        raise NotImplementedError

    # --- payments -------------------------------------------------------
    def insert_payment(
        self,
        record: PaymentRecord,
        ceiling: Optional[Decimal] = None,
        hold_cutoff: Optional[datetime] = None,
        include_held: bool = True,
    ) -> PaymentRecord:
        """
        Insert a payment record. With `ceiling`, the insert only happens when
        paid + held + record.amount stays within it (BalanceExceededError);
        held claims are left out of the sum when `include_held` is False.
        """
        raise NotImplementedError

    def list_payments(self, order_id: str) -> List[PaymentRecord]:
        """Payments of one order, newest first."""
        raise NotImplementedError

    def list_payments_for_orders(self, order_ids: Iterable[str]) -> Dict[str, List[PaymentRecord]]:
        return {order_id: self.list_payments(order_id) for order_id in order_ids}

    def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        raise NotImplementedError

    def find_payment_by_tracking(self, tracking_id: str) -> Optional[PaymentRecord]:
        raise NotImplementedError

    def update_payment(
        self,
        payment_id: str,
        status: PaymentStatus,
        paid_at: Optional[datetime] = None,
        tracking_id: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> Optional[PaymentRecord]:
        raise NotImplementedError

    # --- reviews / analytics / catalog -----------------------------------
    def insert_review(self, review: ReviewRecord) -> ReviewRecord:
        raise NotImplementedError

    def get_review_for_order(self, order_id: str) -> Optional[ReviewRecord]:
        raise NotImplementedError

    def list_reviews(self, product_id: Optional[str] = None) -> List[ReviewRecord]:
        raise NotImplementedError

    def insert_signup(self, signup: SignupRecord) -> SignupRecord:
        raise NotImplementedError

    def insert_visit(self, visit: VisitRecord) -> VisitRecord:
        raise NotImplementedError

    def analytics_counts(self, since: datetime) -> Dict[str, int]:
        """totalViews, todayViews (created at/after `since`) and totalSignups."""
        raise NotImplementedError

    def list_products(self):
        raise NotImplementedError

    def get_product(self, product_id: str):
        raise NotImplementedError

    def save_product(self, product):
        """Insert or replace a catalog product, keyed by its id."""
        raise NotImplementedError
