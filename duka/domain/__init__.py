from .money import (
    round_money,
    normalize_phone,
    compute_order_total,
    compute_balance_due,
    compute_amount_paid_from_payments,
    compute_held_amount,
)
from .payment_status import derive_payment_status, parse_payment_method, parse_payment_status
from .records import (
    OrderLineItem,
    OrderRecord,
    OrderStatus,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    PaymentSummary,
)

__all__ = [
    "round_money",
    "normalize_phone",
    "compute_order_total",
    "compute_balance_due",
    "compute_amount_paid_from_payments",
    "compute_held_amount",
    "derive_payment_status",
    "parse_payment_method",
    "parse_payment_status",
    "OrderLineItem",
    "OrderRecord",
    "OrderStatus",
    "PaymentMethod",
    "PaymentRecord",
    "PaymentStatus",
    "PaymentSummary",
]
