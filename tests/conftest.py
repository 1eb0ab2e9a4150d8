"""Pytest fixtures for duka tests."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from duka.app import create_app
from duka.config import Config
from duka.domain.money import normalize_phone, round_money
from duka.domain.records import (
    OrderLineItem,
    OrderRecord,
    PaymentMethod,
    PaymentStatus,
    new_id,
)
from duka.errors import GatewayError
from duka.extensions import SERVICES_KEY, db
from duka.services.pesapal import FAILED_STATUSES, PAID_STATUSES, GatewayOrder, GatewayStatus

ADMIN_PASSWORD = "siri-ya-duka"
CUSTOMER_PHONE = "+255 653 670 590"

LEGACY_ORDERS_DDL = """
CREATE TABLE orders (
    id VARCHAR(36) PRIMARY KEY,
    product_id VARCHAR(64),
    product_name VARCHAR(255),
    quantity INTEGER,
    full_name VARCHAR(150) NOT NULL,
    phone VARCHAR(40) NOT NULL,
    region_city VARCHAR(150),
    address TEXT,
    status VARCHAR(32) NOT NULL DEFAULT 'pending',
    total NUMERIC(12, 2) NOT NULL,
    created_at DATETIME
)
"""


class MemoryConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = None
    ADMIN_PASSWORD = ADMIN_PASSWORD
    ADMIN_PASSWORD_HASH = None
    SITE_URL = "https://duka.example"
    PUBLIC_API_URL = "https://api.duka.example"
    CORS_ORIGINS = ["https://duka.example"]
    MAIL_SUPPRESS_SEND = True
    ORDER_NOTIFY_EMAIL = None
    ORDER_ALERT_SMS_TO = None
    PAYMENT_PENDING_HOLD_MINUTES = 60


class SqlConfig(MemoryConfig):
    SQLALCHEMY_DATABASE_URI = "sqlite://"


class FakeGateway:
    """Stands in for PesapalClient; statuses are set per tracking id by the test."""

    def __init__(self):
        self.submitted = []
        self.statuses = {}
        self.fail_with = None
        self.is_configured = True

    def missing_config(self):
        return []

    def create_order(self, order_id, amount, description, callback_url, customer_name,
                     customer_phone, customer_email=None):
        if self.fail_with:
            raise GatewayError(self.fail_with)
        tracking_id = f"trk-{len(self.submitted) + 1}"
        self.submitted.append({
            "order_id": order_id,
            "amount": round_money(amount),
            "description": description,
            "callback_url": callback_url,
            "tracking_id": tracking_id,
        })
        return GatewayOrder(
            redirect_url=f"https://pay.example/checkout/{tracking_id}",
            tracking_id=tracking_id,
            merchant_reference=order_id,
        )

    def get_transaction_status(self, tracking_id):
        if self.fail_with:
            raise GatewayError(self.fail_with)
        status = self.statuses.get(tracking_id, "pending")
        return GatewayStatus(
            status=status,
            is_paid=status in PAID_STATUSES,
            is_failed=status in FAILED_STATUSES,
        )


def make_order(store, total=100000, method=PaymentMethod.CASH_ON_DELIVERY, phone=CUSTOMER_PHONE,
               created_at=None, **overrides):
    """Insert an order directly through the store, bypassing catalog pricing."""
    total = round_money(total)
    line = OrderLineItem(
        id="smartwatch-t500-1",
        product_id="smartwatch-t500",
        product_name="Smartwatch T500",
        quantity=1,
        paid_quantity=1,
        free_quantity=0,
        unit_price=total,
        original_unit_price=total,
        line_subtotal=total,
        line_original_total=total,
    )
    fields = dict(
        id=new_id(),
        full_name="Asha Juma",
        phone=phone,
        phone_normalized=normalize_phone(phone),
        region_city="Arusha",
        address="Njiro",
        order_items=[line],
        subtotal=total,
        shipping_fee=Decimal("0.00"),
        total=total,
        payment_method=method,
        payment_status=PaymentStatus.UNPAID,
        created_at=created_at or datetime.utcnow(),
    )
    fields.update(overrides)
    order = OrderRecord(**fields)
    store.insert_order(order)
    return order


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(gateway):
    return create_app(MemoryConfig, gateway=gateway)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.extensions[SERVICES_KEY].store


@pytest.fixture
def sql_app(gateway):
    app = create_app(SqlConfig, gateway=gateway)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def sql_store(sql_app):
    with sql_app.app_context():
        yield sql_app.extensions[SERVICES_KEY].store


@pytest.fixture
def legacy_app(gateway):
    """Database still on the first schema: flat orders table, no order_payments."""
    app = create_app(SqlConfig, gateway=gateway)
    with app.app_context():
        db.session.execute(db.text(LEGACY_ORDERS_DDL))
        db.session.commit()
    yield app
    with app.app_context():
        db.session.remove()
        db.session.execute(db.text("DROP TABLE IF EXISTS orders"))
        db.session.commit()


@pytest.fixture
def legacy_store(legacy_app):
    with legacy_app.app_context():
        yield legacy_app.extensions[SERVICES_KEY].store


@pytest.fixture
def admin_headers():
    return {"X-Admin-Password": ADMIN_PASSWORD}


@pytest.fixture
def order_payload():
    """Two smartwatches shipped upcountry: 90,000 + 10,000 flat fee."""
    return {
        "productId": "smartwatch-t500",
        "quantity": 2,
        "paidQuantity": 2,
        "fullName": "Asha Juma",
        "phone": CUSTOMER_PHONE,
        "address": "Njiro, plot 12",
        "regionCity": "Arusha",
        "paymentMethod": "cash-on-delivery",
    }


def one_hour_ago():
    return datetime.utcnow() - timedelta(hours=1)
