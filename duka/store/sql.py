# duka/store/sql.py
"""
Relational store on top of the Flask-SQLAlchemy session.

Statements are built against the model tables with SQLAlchemy Core so that a
database still on an older schema can be read and written with a reduced
column set: a write that hits a missing column is retried once with the
legacy columns, a read falls back to the legacy column list.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import sqlalchemy as sa
from sqlalchemy.exc import DBAPIError, IntegrityError

from duka.domain.catalog import SEED_PRODUCTS
from duka.domain.money import normalize_phone, round_money
from duka.errors import (
    BalanceExceededError,
    ConflictError,
    MissingRelationError,
    SchemaMismatchError,
    StoreError,
)
from duka.extensions import db
from duka.models import CustomerSignup, Order, OrderPayment, Product, Review, SiteVisit

from .base import LEGACY_ORDER_COLUMNS, ORDER_COLUMNS, OrderStore
from .rows import (
    order_from_row,
    order_to_row,
    payment_from_row,
    payment_to_row,
    product_from_row,
    product_to_row,
    review_from_row,
)

log = logging.getLogger(__name__)

# PostgreSQL SQLSTATE codes
UNDEFINED_TABLE = "42P01"
UNDEFINED_COLUMN = "42703"

PAYMENT_COLUMNS = (
    "id", "order_id", "amount", "method", "status", "reference",
    "tracking_id", "notes", "paid_at", "created_at",
)

# counted against the balance when a new payment is validated
_GUARDED_INSERT = """
INSERT INTO order_payments ({columns})
SELECT {values}
WHERE (
    SELECT COALESCE(SUM(amount), 0) FROM order_payments
    WHERE order_id = :order_id AND ({claimed})
) + :amount <= :ceiling
"""

_CLAIMED_WITH_HELD = (
    "status IN ('paid', 'pending-verification')"
    " OR (status = 'pending' AND created_at >= :hold_cutoff)"
)
_CLAIMED_PAID = "status = 'paid'"

_EPOCH = datetime(1970, 1, 1)

# first-generation orders table; no model defaults, so an insert names only these columns
_LEGACY_ORDERS = sa.table(
    "orders", *[sa.column(name, Order.__table__.c[name].type) for name in LEGACY_ORDER_COLUMNS]
)


def classify_db_error(exc: BaseException, table: Optional[str] = None) -> StoreError:
    """
    Map a driver error to the store hierarchy. PostgreSQL drivers expose the
    SQLSTATE (psycopg2 `pgcode`, psycopg 3 `sqlstate`); SQLite only has text.
    """
    orig = getattr(exc, "orig", None) or exc
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    message = str(orig).strip() or exc.__class__.__name__

    if code == UNDEFINED_TABLE:
        return MissingRelationError(message, table=table)
    if code == UNDEFINED_COLUMN:
        return SchemaMismatchError(message, table=table)

    text = message.lower()
    if "no such table" in text or ("relation" in text and "does not exist" in text):
        return MissingRelationError(message, table=table)
    if (
        "no such column" in text
        or "has no column named" in text
        or ("column" in text and "does not exist" in text)
    ):
        return SchemaMismatchError(message, table=table)
    return StoreError(message)


class SqlOrderStore(OrderStore):
    kind = "sql"

    def __init__(self, session=None):
        super().__init__()
        self._session = session

    @property
    def session(self):
        return self._session or db.session

    # --- plumbing -------------------------------------------------------
    def _execute(self, stmt, params=None, table: Optional[str] = None):
        try:
            return self.session.execute(stmt, params or {})
        except DBAPIError as exc:
            self.session.rollback()
            raise classify_db_error(exc, table) from exc

    def _commit(self, table: Optional[str] = None):
        try:
            self.session.commit()
        except DBAPIError as exc:
            self.session.rollback()
            raise classify_db_error(exc, table) from exc

    def _fetch_orders(self, columns, where, order_by_newest):
        t = Order.__table__
        stmt = sa.select(*[t.c[name] for name in columns])
        if where is not None:
            stmt = stmt.where(where)
        if order_by_newest:
            stmt = stmt.order_by(t.c.created_at.desc())
        return [dict(row._mapping) for row in self._execute(stmt, table="orders")]

    def _select_orders(self, where=None, order_by_newest=True, legacy_where=None):
        """
        Order rows as dicts. `legacy_where` replaces `where` on the legacy
        retry when the primary filter itself uses a newer column.
        """
        try:
            return self._fetch_orders(ORDER_COLUMNS, where, order_by_newest)
        except MissingRelationError:
            raise
        except SchemaMismatchError as exc:
            log.warning("orders table is on an older schema (%s); reading legacy columns", exc.message)
            clause = where if legacy_where is None else legacy_where
            return self._fetch_orders(LEGACY_ORDER_COLUMNS, clause, order_by_newest)

    # --- orders ---------------------------------------------------------
    def insert_order(self, order):
        t = Order.__table__
        row = order_to_row(order)
        try:
            self._execute(t.insert().values(**row), table="orders")
            self._commit("orders")
        except MissingRelationError:
            raise
        except SchemaMismatchError as exc:
            log.warning("Order insert hit schema drift (%s); retrying with legacy columns", exc.message)
            legacy = {name: row[name] for name in LEGACY_ORDER_COLUMNS}
            self._execute(_LEGACY_ORDERS.insert().values(**legacy), table="orders")
            self._commit("orders")
        return order

    def get_order(self, order_id):
        t = Order.__table__
        rows = self._select_orders(t.c.id == str(order_id), order_by_newest=False)
        return order_from_row(rows[0]) if rows else None

    def list_orders_by_phone(self, phone_normalized, order_id=None):
        t = Order.__table__
        where = t.c.phone_normalized == phone_normalized
        legacy_where = t.c.phone.isnot(None)
        if order_id:
            where = sa.and_(where, t.c.id == order_id)
            legacy_where = sa.and_(legacy_where, t.c.id == order_id)

        rows = self._select_orders(where, legacy_where=legacy_where)
        orders = [order_from_row(row) for row in rows]
        if rows and "phone_normalized" not in rows[0]:
            # old rows carry only the raw phone; compare the local part
            suffix = phone_normalized[-9:]
            orders = [o for o in orders if normalize_phone(o.phone)[-9:] == suffix]
        return orders

    def list_orders(self, limit=None):
        rows = self._select_orders()
        if limit:
            rows = rows[:limit]
        return [order_from_row(row) for row in rows]

    def delete_order(self, order_id):
        payments = OrderPayment.__table__
        orders = Order.__table__
        try:
            self._execute(payments.delete().where(payments.c.order_id == str(order_id)), table="order_payments")
        except MissingRelationError:
            # no payments table yet, so no payments to remove
            pass
        result = self._execute(orders.delete().where(orders.c.id == str(order_id)), table="orders")
        self._commit("orders")
        return bool(result.rowcount)

    def update_order(self, order_id, **fields):
        t = Order.__table__
        values = {}
        for key, value in fields.items():
            values[key] = getattr(value, "value", value)

        stmt = t.update().where(t.c.id == str(order_id))
        try:
            result = self._execute(stmt.values(**values), table="orders")
            self._commit("orders")
        except MissingRelationError:
            raise
        except SchemaMismatchError as exc:
            if "status" not in values or len(values) == 1:
                raise
            log.warning("Order update hit schema drift (%s); updating status only", exc.message)
            result = self._execute(stmt.values(status=values["status"]), table="orders")
            self._commit("orders")
        return bool(result.rowcount)

    def save_payment_summary(self, order_id, amount_paid, payment_status, last_payment_at):
        t = Order.__table__
        self._execute(
            t.update()
            .where(t.c.id == str(order_id))
            .values(
                amount_paid=round_money(amount_paid),
                payment_status=getattr(payment_status, "value", payment_status),
                last_payment_at=last_payment_at,
            ),
            table="orders",
        )
        self._commit("orders")

    # --- payments -------------------------------------------------------
    def insert_payment(self, record, ceiling=None, hold_cutoff=None, include_held=True):
        t = OrderPayment.__table__
        row = payment_to_row(record)

        if ceiling is None:
            self._execute(t.insert().values(**row), table="order_payments")
            self._commit("order_payments")
            return record

        orders = Order.__table__
        # row lock on the order; a no-op on SQLite, which locks the whole file on write
        self._execute(
            sa.select(orders.c.id).where(orders.c.id == record.order_id).with_for_update(),
            table="orders",
        )

        present = {k: v for k, v in row.items() if v is not None}
        binds = [sa.bindparam(k, type_=t.c[k].type) for k in present]
        binds.append(sa.bindparam("ceiling", type_=sa.Numeric()))
        params = dict(present)
        if include_held:
            binds.append(sa.bindparam("hold_cutoff", type_=sa.DateTime()))
            params["hold_cutoff"] = hold_cutoff or _EPOCH

        stmt = sa.text(
            _GUARDED_INSERT.format(
                columns=", ".join(present),
                values=", ".join(f":{k}" for k in present),
                claimed=_CLAIMED_WITH_HELD if include_held else _CLAIMED_PAID,
            )
        ).bindparams(*binds)
        # half a cent of slack for drivers that sum NUMERIC as float
        params["ceiling"] = round_money(ceiling) + Decimal("0.005")

        result = self._execute(stmt, params, table="order_payments")
        if result.rowcount == 0:
            self.session.rollback()
            raise BalanceExceededError("Amount exceeds the remaining balance of this order.")
        self._commit("order_payments")
        return record

    def _select_payments(self, where):
        t = OrderPayment.__table__
        stmt = (
            sa.select(*[t.c[name] for name in PAYMENT_COLUMNS])
            .where(where)
            .order_by(t.c.created_at.desc())
        )
        return [payment_from_row(dict(row._mapping)) for row in self._execute(stmt, table="order_payments")]

    def list_payments(self, order_id):
        return self._select_payments(OrderPayment.__table__.c.order_id == str(order_id))

    def list_payments_for_orders(self, order_ids: Iterable[str]):
        ids = [str(i) for i in order_ids]
        grouped: Dict[str, List] = {order_id: [] for order_id in ids}
        if not ids:
            return grouped
        for payment in self._select_payments(OrderPayment.__table__.c.order_id.in_(ids)):
            grouped.setdefault(payment.order_id, []).append(payment)
        return grouped

    def get_payment(self, payment_id):
        found = self._select_payments(OrderPayment.__table__.c.id == str(payment_id))
        return found[0] if found else None

    def find_payment_by_tracking(self, tracking_id):
        if not tracking_id:
            return None
        found = self._select_payments(OrderPayment.__table__.c.tracking_id == tracking_id)
        return found[0] if found else None

    def update_payment(self, payment_id, status, paid_at=None, tracking_id=None, reference=None):
        t = OrderPayment.__table__
        values = {"status": getattr(status, "value", status), "paid_at": paid_at}
        if tracking_id:
            values["tracking_id"] = tracking_id
        if reference:
            values["reference"] = reference
        result = self._execute(
            t.update().where(t.c.id == str(payment_id)).values(**values),
            table="order_payments",
        )
        self._commit("order_payments")
        if not result.rowcount:
            return None
        return self.get_payment(payment_id)

    # --- reviews / analytics / catalog -----------------------------------
    def insert_review(self, review):
        t = Review.__table__
        try:
            self.session.execute(
                t.insert().values(
                    id=review.id,
                    order_id=review.order_id,
                    product_id=review.product_id,
                    rating=review.rating,
                    comment=review.comment,
                    customer_name=review.customer_name,
                    created_at=review.created_at,
                )
            )
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Review ya oda hii tayari ipo.") from exc
        except DBAPIError as exc:
            self.session.rollback()
            raise classify_db_error(exc, "reviews") from exc
        return review

    def get_review_for_order(self, order_id):
        t = Review.__table__
        row = self._execute(sa.select(t).where(t.c.order_id == order_id), table="reviews").first()
        return review_from_row(dict(row._mapping)) if row else None

    def list_reviews(self, product_id=None):
        t = Review.__table__
        stmt = sa.select(t).order_by(t.c.created_at.desc())
        if product_id:
            stmt = stmt.where(t.c.product_id == product_id)
        return [review_from_row(dict(row._mapping)) for row in self._execute(stmt, table="reviews")]

    def insert_signup(self, signup):
        self._execute(
            CustomerSignup.__table__.insert().values(
                id=signup.id,
                full_name=signup.full_name,
                phone=signup.phone,
                email=signup.email or None,
                created_at=signup.created_at,
            ),
            table="customer_signups",
        )
        self._commit("customer_signups")
        return signup

    def insert_visit(self, visit):
        self._execute(
            SiteVisit.__table__.insert().values(
                id=visit.id,
                path=visit.path,
                referrer=visit.referrer or None,
                user_agent=visit.user_agent or None,
                created_at=visit.created_at,
            ),
            table="site_visits",
        )
        self._commit("site_visits")
        return visit

    def analytics_counts(self, since):
        visits = SiteVisit.__table__
        signups = CustomerSignup.__table__
        count = sa.func.count()
        total_views = self._execute(sa.select(count).select_from(visits), table="site_visits").scalar()
        today_views = self._execute(
            sa.select(count).select_from(visits).where(visits.c.created_at >= since),
            table="site_visits",
        ).scalar()
        total_signups = self._execute(sa.select(count).select_from(signups), table="customer_signups").scalar()
        return {
            "totalViews": int(total_views or 0),
            "todayViews": int(today_views or 0),
            "totalSignups": int(total_signups or 0),
        }

    def _catalog(self) -> Dict[str, object]:
        products = {p.id: p for p in SEED_PRODUCTS}
        try:
            rows = self._execute(sa.select(Product.__table__), table="products")
        except SchemaMismatchError as exc:
            log.warning("products table unavailable (%s); serving the built-in catalog", exc.message)
            return products
        for row in rows:
            product = product_from_row(dict(row._mapping))
            products[product.id] = product
        return products

    def list_products(self):
        return list(self._catalog().values())

    def get_product(self, product_id):
        return self._catalog().get(product_id)

    def save_product(self, product):
        t = Product.__table__
        row = product_to_row(product)
        values = {k: v for k, v in row.items() if k != "id"}
        result = self._execute(t.update().where(t.c.id == product.id).values(**values), table="products")
        if not result.rowcount:
            self._execute(t.insert().values(created_at=datetime.utcnow(), **row), table="products")
        self._commit("products")
        return product
