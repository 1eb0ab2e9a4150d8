"""SqlOrderStore against SQLite, including a database left on the first schema."""

import json
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from conftest import CUSTOMER_PHONE, make_order

from duka.domain.records import (
    OrderStatus,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    ReviewRecord,
    SignupRecord,
    VisitRecord,
    new_id,
)
from duka.errors import (
    BalanceExceededError,
    ConflictError,
    MissingRelationError,
    SchemaMismatchError,
    StoreError,
)
from duka.extensions import db
from duka.services.order_sync import refresh_order_payment_summary
from duka.services.orders import place_order, update_order_admin
from duka.services.payments import create_balance_payment, record_manual_payment, reject_payment
from duka.services.products import parse_product_payload
from duka.store.sql import classify_db_error


def _payment(order_id, amount, status=PaymentStatus.PAID, **kwargs):
    return PaymentRecord(
        id=new_id(),
        order_id=order_id,
        amount=Decimal(str(amount)),
        method=PaymentMethod.MANUAL,
        status=status,
        **kwargs,
    )


class _DriverError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


class _Wrapped(Exception):
    def __init__(self, orig):
        super().__init__(str(orig))
        self.orig = orig


class TestClassifyDbError:
    def test_postgres_codes(self):
        assert isinstance(classify_db_error(_Wrapped(_DriverError("x", "42P01"))), MissingRelationError)
        err = classify_db_error(_Wrapped(_DriverError("x", "42703")), table="orders")
        assert type(err) is SchemaMismatchError
        assert err.table == "orders"

    @pytest.mark.parametrize(
        "message, expected",
        [
            ("no such table: order_payments", MissingRelationError),
            ('relation "order_payments" does not exist', MissingRelationError),
            ("no such column: orders.order_items", SchemaMismatchError),
            ("table orders has no column named phone_normalized", SchemaMismatchError),
            ('column "payment_status" does not exist', SchemaMismatchError),
            ("database is locked", StoreError),
        ],
    )
    def test_message_text(self, message, expected):
        assert type(classify_db_error(_DriverError(message))) is expected


class TestOrders:
    def test_roundtrip_keeps_line_items(self, sql_store):
        order = make_order(sql_store, total=75000)

        loaded = sql_store.get_order(order.id)
        assert loaded.total == Decimal("75000.00")
        assert loaded.phone_normalized == "255653670590"
        assert loaded.payment_method == PaymentMethod.CASH_ON_DELIVERY
        assert [item.product_id for item in loaded.order_items] == ["smartwatch-t500"]
        assert loaded.order_items[0].unit_price == Decimal("75000.00")

    def test_order_items_stored_as_json_text(self, sql_store):
        order = make_order(sql_store)
        items = [
            {"productId": "wireless-earbuds-pro", "productName": "Wireless Earbuds Pro", "quantity": 3,
             "paidQuantity": 2, "freeQuantity": 1, "unitPrice": 35000, "lineSubtotal": 70000},
        ]
        db.session.execute(
            db.text("UPDATE orders SET order_items = :items WHERE id = :id"),
            {"items": json.dumps(json.dumps(items)), "id": order.id},
        )
        db.session.commit()

        loaded = sql_store.get_order(order.id)
        assert loaded.order_items[0].product_id == "wireless-earbuds-pro"
        assert loaded.order_items[0].free_quantity == 1

    def test_list_by_phone_newest_first(self, sql_store):
        old = make_order(sql_store, created_at=datetime.utcnow() - timedelta(days=2))
        new = make_order(sql_store)
        make_order(sql_store, phone="+255 700 111 222")

        found = sql_store.list_orders_by_phone("255653670590")
        assert [o.id for o in found] == [new.id, old.id]
        assert [o.id for o in sql_store.list_orders_by_phone("255653670590", old.id)] == [old.id]

    def test_update_order(self, sql_store):
        order = make_order(sql_store)

        assert sql_store.update_order(order.id, status=OrderStatus.DELIVERED, total=Decimal("90000"))
        assert not sql_store.update_order("missing", status=OrderStatus.DELIVERED)

        loaded = sql_store.get_order(order.id)
        assert loaded.status == OrderStatus.DELIVERED
        assert loaded.total == Decimal("90000.00")

    def test_delete_order_removes_its_payments(self, sql_store):
        order = make_order(sql_store)
        other = make_order(sql_store)
        sql_store.insert_payment(_payment(order.id, 100))
        sql_store.insert_payment(_payment(other.id, 100))

        assert sql_store.delete_order(order.id)
        assert sql_store.get_order(order.id) is None
        assert sql_store.list_payments(order.id) == []
        assert len(sql_store.list_payments(other.id)) == 1
        assert not sql_store.delete_order(order.id)


class TestGuardedPaymentInsert:
    def test_sequential_claims_stop_at_total(self, sql_store):
        order = make_order(sql_store, total=100000)
        sql_store.insert_payment(_payment(order.id, 60000), ceiling=Decimal("100000"))

        with pytest.raises(BalanceExceededError):
            sql_store.insert_payment(_payment(order.id, 60000), ceiling=Decimal("100000"))
        sql_store.insert_payment(_payment(order.id, 40000), ceiling=Decimal("100000"))

        assert sum(p.amount for p in sql_store.list_payments(order.id)) == Decimal("100000.00")

    def test_pending_claims_count_until_cutoff(self, sql_store):
        order = make_order(sql_store, total=100000)
        now = datetime.utcnow()
        sql_store.insert_payment(
            _payment(order.id, 80000, PaymentStatus.PENDING, created_at=now - timedelta(hours=2))
        )

        with pytest.raises(BalanceExceededError):
            sql_store.insert_payment(_payment(order.id, 30000), ceiling=Decimal("100000"))
        sql_store.insert_payment(
            _payment(order.id, 30000), ceiling=Decimal("100000"), hold_cutoff=now - timedelta(hours=1)
        )

    def test_failed_claims_do_not_count(self, sql_store):
        order = make_order(sql_store, total=1000)
        sql_store.insert_payment(_payment(order.id, 1000, PaymentStatus.FAILED))
        sql_store.insert_payment(_payment(order.id, 1000), ceiling=Decimal("1000"))

    @pytest.mark.parametrize("status", [PaymentStatus.PENDING_VERIFICATION, PaymentStatus.PENDING])
    def test_guard_alone_rejects_second_held_claim(self, sql_store, status):
        order = make_order(sql_store, total=100000)
        cutoff = datetime.utcnow() - timedelta(hours=1)

        # straight to the store, no order lock held
        sql_store.insert_payment(_payment(order.id, 60000, status), ceiling=Decimal("100000"), hold_cutoff=cutoff)
        with pytest.raises(BalanceExceededError):
            sql_store.insert_payment(
                _payment(order.id, 60000, status), ceiling=Decimal("100000"), hold_cutoff=cutoff
            )

        assert len(sql_store.list_payments(order.id)) == 1

    def test_paid_only_ceiling_skips_held_claims(self, sql_store):
        order = make_order(sql_store, total=100000)
        sql_store.insert_payment(_payment(order.id, 100000, PaymentStatus.PENDING_VERIFICATION))

        with pytest.raises(BalanceExceededError):
            sql_store.insert_payment(_payment(order.id, 100000), ceiling=Decimal("100000"))
        sql_store.insert_payment(_payment(order.id, 100000), ceiling=Decimal("100000"), include_held=False)

        with pytest.raises(BalanceExceededError):
            sql_store.insert_payment(_payment(order.id, 1), ceiling=Decimal("100000"), include_held=False)

    def test_payment_lookup_and_update(self, sql_store):
        order = make_order(sql_store)
        record = _payment(order.id, 5000, PaymentStatus.PENDING, tracking_id="trk-9")
        sql_store.insert_payment(record)

        assert sql_store.find_payment_by_tracking("trk-9").id == record.id
        paid_at = datetime(2025, 6, 1, 12, 0)
        updated = sql_store.update_payment(record.id, PaymentStatus.PAID, paid_at=paid_at, reference="REF-1")
        assert updated.status == PaymentStatus.PAID
        assert updated.paid_at == paid_at
        assert updated.reference == "REF-1"
        assert updated.tracking_id == "trk-9"
        assert sql_store.update_payment("missing", PaymentStatus.PAID) is None

    def test_payments_for_several_orders(self, sql_store):
        first = make_order(sql_store)
        second = make_order(sql_store)
        sql_store.insert_payment(_payment(first.id, 100))

        grouped = sql_store.list_payments_for_orders([first.id, second.id])
        assert len(grouped[first.id]) == 1
        assert grouped[second.id] == []


class TestServicesOnDatabase:
    def test_balance_payment_flow(self, sql_store, gateway):
        order = make_order(sql_store, total=100000)
        record_manual_payment(sql_store, order.id, 30000)

        with pytest.raises(BalanceExceededError):
            create_balance_payment(sql_store, gateway, order.id, CUSTOMER_PHONE, 70001)
        outcome = create_balance_payment(sql_store, gateway, order.id, CUSTOMER_PHONE, 70000)

        assert outcome.summary.amount_paid == Decimal("30000.00")
        saved = sql_store.get_order(order.id)
        assert saved.payment_status == PaymentStatus.PARTIAL
        assert saved.amount_paid == Decimal("30000.00")

    def test_reviews_are_unique_per_order(self, sql_store):
        order = make_order(sql_store)
        review = ReviewRecord(
            id=new_id(), order_id=order.id, product_id="smartwatch-t500", rating=5,
            comment="Nzuri sana", customer_name="Asha",
        )
        sql_store.insert_review(review)

        with pytest.raises(ConflictError):
            sql_store.insert_review(
                ReviewRecord(
                    id=new_id(), order_id=order.id, product_id="smartwatch-t500", rating=1,
                    comment="", customer_name="",
                )
            )
        assert sql_store.get_review_for_order(order.id).comment == "Nzuri sana"
        assert len(sql_store.list_reviews("smartwatch-t500")) == 1

    def test_analytics_counts(self, sql_store):
        sql_store.insert_visit(VisitRecord(id=new_id(), path="/", created_at=datetime.utcnow() - timedelta(days=3)))
        sql_store.insert_visit(VisitRecord(id=new_id(), path="/product/smartwatch-t500"))
        sql_store.insert_signup(SignupRecord(id=new_id(), full_name="Neema", phone="0712000000"))

        counts = sql_store.analytics_counts(datetime.utcnow() - timedelta(days=1))
        assert counts == {"totalViews": 2, "todayViews": 1, "totalSignups": 1}

    def test_catalog_merges_products_table(self, sql_store):
        db.session.execute(
            db.text(
                "INSERT INTO products (id, name, slug, category, original_price, sale_price, in_stock) "
                "VALUES ('mini-blender', 'Mini Blender', 'mini-blender', 'home', 60000, 30000, 1)"
            )
        )
        db.session.commit()

        ids = {p.id for p in sql_store.list_products()}
        assert {"mini-blender", "smartwatch-t500"} <= ids
        assert sql_store.get_product("mini-blender").sale_price == Decimal("30000.00")

    def test_rejected_claim_frees_the_balance(self, sql_store, gateway):
        order = make_order(sql_store, total=100000)
        claim = create_balance_payment(
            sql_store, gateway, order.id, CUSTOMER_PHONE, 100000, method="bank-deposit"
        ).payment

        payment, summary = reject_payment(sql_store, claim.id)

        assert payment.status == PaymentStatus.FAILED
        assert summary.balance_due == Decimal("100000.00")
        create_balance_payment(sql_store, gateway, order.id, CUSTOMER_PHONE, 100000)

    def test_paid_override_records_manual_payment(self, sql_store):
        order = make_order(sql_store, total=100000)

        updated, summary = update_order_admin(sql_store, order.id, "delivered", payment_status="paid")

        assert updated.payment_status == PaymentStatus.PAID
        assert summary.balance_due == 0
        [payment] = sql_store.list_payments(order.id)
        assert payment.method == PaymentMethod.MANUAL
        assert payment.amount == Decimal("100000.00")

    def test_save_product_inserts_then_updates(self, sql_store):
        product = parse_product_payload(
            {"name": "Mini Blender", "category": "home-living", "originalPrice": 60000, "salePrice": 30000}
        )
        sql_store.save_product(product)
        assert sql_store.get_product("mini-blender").sale_price == Decimal("30000.00")

        cheaper = parse_product_payload(
            {"name": "Mini Blender", "category": "home-living", "originalPrice": 60000, "salePrice": 25000,
             "sizeOptions": ["1L", "2L"]},
            "mini-blender",
        )
        sql_store.save_product(cheaper)

        loaded = sql_store.get_product("mini-blender")
        assert loaded.sale_price == Decimal("25000.00")
        assert loaded.size_options == ("1L", "2L")
        assert db.session.execute(db.text("SELECT COUNT(*) FROM products")).scalar() == 1


class TestLegacySchema:
    def test_place_and_read_order(self, legacy_store, gateway, order_payload):
        placed = place_order(legacy_store, gateway, order_payload)

        loaded = legacy_store.get_order(placed.order.id)
        assert loaded.total == Decimal("100000.00")
        assert loaded.product_id == "smartwatch-t500"
        assert loaded.quantity == 2
        assert loaded.payment_status == PaymentStatus.UNPAID

    def test_lookup_by_phone_compares_local_number(self, legacy_store, gateway, order_payload):
        placed = place_order(legacy_store, gateway, order_payload)

        found = legacy_store.list_orders_by_phone("0653670590")
        assert [o.id for o in found] == [placed.order.id]
        assert legacy_store.list_orders_by_phone("0700111222") == []

    def test_payments_relation_missing(self, legacy_store, gateway, order_payload):
        placed = place_order(legacy_store, gateway, order_payload)

        with pytest.raises(MissingRelationError):
            legacy_store.list_payments(placed.order.id)
        summary = refresh_order_payment_summary(legacy_store, placed.order.id)
        assert summary.payment_status == PaymentStatus.UNPAID
        assert summary.balance_due == Decimal("100000.00")

        with pytest.raises(MissingRelationError) as excinfo:
            record_manual_payment(legacy_store, placed.order.id, 1000)
        assert "migration" in excinfo.value.message

    def test_admin_update_falls_back_to_status(self, legacy_store, gateway, order_payload):
        placed = place_order(legacy_store, gateway, order_payload)

        order, _ = update_order_admin(legacy_store, placed.order.id, "confirmed", payment_status="paid")
        assert order.status == OrderStatus.CONFIRMED
