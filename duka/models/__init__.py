# duka/models/__init__.py
from .order import Order
from .order_payment import OrderPayment
from .product import Product
from .review import Review
from .analytics import CustomerSignup, SiteVisit

__all__ = [
    "Order",
    "OrderPayment",
    "Product",
    "Review",
    "CustomerSignup",
    "SiteVisit",
]
