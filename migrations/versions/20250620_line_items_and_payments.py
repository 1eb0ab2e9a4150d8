"""order line items, installment fields and order_payments

Revision ID: 20250620_line_items_and_payments
Revises: 20250301_initial_orders
Create Date: 2025-06-20
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision = "20250620_line_items_and_payments"
down_revision = "20250301_initial_orders"
branch_labels = None
depends_on = None


def _new_order_columns():
    return [
        sa.Column("order_items", sa.JSON(), nullable=True),
        sa.Column("phone_normalized", sa.String(length=40), nullable=True),
        sa.Column("selected_size", sa.String(length=40), nullable=True),
        sa.Column("selected_color", sa.String(length=40), nullable=True),
        sa.Column("payment_method", sa.String(length=32), nullable=True),
        sa.Column("payment_status", sa.String(length=32), nullable=True),
        sa.Column("installment_enabled", sa.Boolean(), nullable=True),
        sa.Column("deposit_amount", sa.Numeric(12, 2), nullable=True, server_default="0"),
        sa.Column("installment_notes", sa.Text(), nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=True),
        sa.Column("shipping_fee", sa.Numeric(12, 2), nullable=True),
        sa.Column("shipping_label", sa.String(length=150), nullable=True),
        sa.Column("shipping_adjustment", sa.Numeric(12, 2), nullable=True, server_default="0"),
        sa.Column("shipping_adjustment_note", sa.Text(), nullable=True),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=True, server_default="0"),
        sa.Column("payment_reference", sa.String(length=255), nullable=True),
        sa.Column("payment_tracking_id", sa.String(length=255), nullable=True),
        sa.Column("last_payment_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    cols = {c["name"] for c in inspector.get_columns("orders")}

    for column in _new_order_columns():
        if column.name not in cols:
            op.add_column("orders", column)
    if "phone_normalized" not in cols:
        op.create_index("ix_orders_phone_normalized", "orders", ["phone_normalized"])

    if "order_payments" not in set(inspector.get_table_names()):
        op.create_table(
            "order_payments",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("order_id", sa.String(length=36), sa.ForeignKey("orders.id"), nullable=False),
            sa.Column("amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("method", sa.String(length=32), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
            sa.Column("reference", sa.String(length=255), nullable=True),
            sa.Column("tracking_id", sa.String(length=255), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("paid_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_order_payments_order_id", "order_payments", ["order_id"])
        op.create_index("ix_order_payments_tracking_id", "order_payments", ["tracking_id"])

    # backfill the lookup key; old rows keep formatting like "+255 653 670 590"
    rows = bind.execute(sa.text("SELECT id, phone FROM orders WHERE phone_normalized IS NULL")).fetchall()
    for row in rows:
        digits = "".join(ch for ch in (row.phone or "") if ch.isdigit())
        bind.execute(
            sa.text("UPDATE orders SET phone_normalized = :p WHERE id = :id"),
            {"p": digits, "id": row.id},
        )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    if "order_payments" in set(inspector.get_table_names()):
        op.drop_table("order_payments")

    cols = {c["name"] for c in inspector.get_columns("orders")}
    if "phone_normalized" in cols:
        op.drop_index("ix_orders_phone_normalized", table_name="orders")
    with op.batch_alter_table("orders") as batch:
        for column in _new_order_columns():
            if column.name in cols:
                batch.drop_column(column.name)
