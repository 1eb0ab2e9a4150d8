# duka/domain/records.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .money import ZERO, compute_balance_due


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "cash-on-delivery"
    PESAPAL = "pesapal"
    BANK_DEPOSIT = "bank-deposit"
    MANUAL = "manual"  # admin-recorded; never chosen by a customer


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    FAILED = "failed"
    PENDING_VERIFICATION = "pending-verification"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.utcnow()


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


@dataclass
class OrderLineItem:
    id: str
    product_id: str
    product_name: str
    quantity: int
    paid_quantity: int
    free_quantity: int
    unit_price: Decimal
    original_unit_price: Decimal
    line_subtotal: Decimal
    line_original_total: Decimal
    selected_size: str = ""
    selected_color: str = ""

    def to_row(self) -> Dict[str, Any]:
        """JSON-safe form stored in the orders.order_items column."""
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "paid_quantity": self.paid_quantity,
            "free_quantity": self.free_quantity,
            "unit_price": float(self.unit_price),
            "original_unit_price": float(self.original_unit_price),
            "line_subtotal": float(self.line_subtotal),
            "line_original_total": float(self.line_original_total),
            "selected_size": self.selected_size,
            "selected_color": self.selected_color,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "paidQuantity": self.paid_quantity,
            "freeQuantity": self.free_quantity,
            "unitPrice": float(self.unit_price),
            "originalUnitPrice": float(self.original_unit_price),
            "lineSubtotal": float(self.line_subtotal),
            "lineOriginalTotal": float(self.line_original_total),
            "selectedSize": self.selected_size,
            "selectedColor": self.selected_color,
        }


@dataclass
class PaymentRecord:
    id: str
    order_id: str
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    reference: str = ""
    tracking_id: str = ""
    notes: str = ""
    created_at: datetime = field(default_factory=utcnow)
    paid_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "orderId": self.order_id,
            "amount": float(self.amount),
            "method": self.method.value,
            "status": self.status.value,
            "reference": self.reference,
            "trackingId": self.tracking_id,
            "notes": self.notes,
            "createdAt": _iso(self.created_at),
            "paidAt": _iso(self.paid_at),
        }


@dataclass
class OrderRecord:
    """
    One customer order.

    `amount_paid` and `payment_status` are a denormalized cache owned by
    refresh_order_payment_summary; nothing else writes them after placement.
    """
    id: str
    full_name: str
    phone: str
    phone_normalized: str
    region_city: str
    address: str
    order_items: List[OrderLineItem]
    subtotal: Decimal
    shipping_fee: Decimal
    total: Decimal
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    status: OrderStatus = OrderStatus.PENDING
    amount_paid: Decimal = ZERO
    shipping_label: str = ""
    shipping_adjustment: Decimal = ZERO
    shipping_adjustment_note: str = ""
    installment_enabled: bool = False
    deposit_amount: Decimal = ZERO
    installment_notes: str = ""
    payment_reference: str = ""
    payment_tracking_id: str = ""
    created_at: datetime = field(default_factory=utcnow)
    last_payment_at: Optional[datetime] = None

    @property
    def balance_due(self) -> Decimal:
        return compute_balance_due(self.total, self.amount_paid)

    @property
    def product_id(self) -> str:
        return self.order_items[0].product_id if self.order_items else ""

    @property
    def product_name(self) -> str:
        return self.order_items[0].product_name if self.order_items else ""

    @property
    def quantity(self) -> int:
        return sum(item.quantity for item in self.order_items) or 1

    def to_dict(self, payments: Optional[List[PaymentRecord]] = None) -> Dict[str, Any]:
        out = {
            "id": self.id,
            "fullName": self.full_name,
            "phone": self.phone,
            "regionCity": self.region_city,
            "address": self.address,
            "status": self.status.value,
            "paymentMethod": self.payment_method.value,
            "paymentStatus": self.payment_status.value,
            "installmentEnabled": self.installment_enabled,
            "depositAmount": float(self.deposit_amount),
            "installmentNotes": self.installment_notes,
            "subtotal": float(self.subtotal),
            "shippingFee": float(self.shipping_fee),
            "shippingLabel": self.shipping_label,
            "shippingAdjustment": float(self.shipping_adjustment),
            "shippingAdjustmentNote": self.shipping_adjustment_note,
            "total": float(self.total),
            "amountPaid": float(self.amount_paid),
            "balanceDue": float(self.balance_due),
            "paymentReference": self.payment_reference,
            "paymentTrackingId": self.payment_tracking_id,
            "orderItems": [item.to_dict() for item in self.order_items],
            "createdAt": _iso(self.created_at),
            "lastPaymentAt": _iso(self.last_payment_at),
        }
        if payments is not None:
            out["payments"] = [p.to_dict() for p in payments]
        return out


@dataclass(frozen=True)
class PaymentSummary:
    order_id: str
    amount_paid: Decimal
    total: Decimal
    balance_due: Decimal
    payment_status: PaymentStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orderId": self.order_id,
            "amountPaid": float(self.amount_paid),
            "total": float(self.total),
            "balanceDue": float(self.balance_due),
            "paymentStatus": self.payment_status.value,
        }


@dataclass
class ReviewRecord:
    id: str
    order_id: str
    product_id: str
    rating: int
    comment: str
    customer_name: str
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "orderId": self.order_id,
            "productId": self.product_id,
            "rating": self.rating,
            "comment": self.comment,
            "customerName": self.customer_name,
            "createdAt": _iso(self.created_at),
        }


@dataclass
class SignupRecord:
    id: str
    full_name: str
    phone: str
    email: str = ""
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class VisitRecord:
    id: str
    path: str
    referrer: str = ""
    user_agent: str = ""
    created_at: datetime = field(default_factory=utcnow)
