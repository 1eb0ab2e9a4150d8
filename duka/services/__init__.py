from .order_sync import refresh_order_payment_summary
from .orders import PlacedOrder, place_order, update_order_admin
from .payments import (
    PaymentOutcome,
    Settlement,
    apply_gateway_settlement,
    confirm_payment,
    create_balance_payment,
    record_manual_payment,
    reject_payment,
)
from .pesapal import GatewayOrder, GatewayStatus, PesapalClient
from .products import create_product, parse_product_payload, update_product

__all__ = [
    "refresh_order_payment_summary",
    "PlacedOrder",
    "place_order",
    "update_order_admin",
    "PaymentOutcome",
    "Settlement",
    "apply_gateway_settlement",
    "confirm_payment",
    "create_balance_payment",
    "record_manual_payment",
    "reject_payment",
    "GatewayOrder",
    "GatewayStatus",
    "PesapalClient",
    "create_product",
    "parse_product_payload",
    "update_product",
]
