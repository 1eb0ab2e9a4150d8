"""initial orders schema (single product per order)

Revision ID: 20250301_initial_orders
Revises:
Create Date: 2025-03-01
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision = "20250301_initial_orders"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    tables = set(inspect(bind).get_table_names())

    if "orders" not in tables:
        op.create_table(
            "orders",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("product_id", sa.String(length=64), nullable=True),
            sa.Column("product_name", sa.String(length=255), nullable=True),
            sa.Column("quantity", sa.Integer(), nullable=True),
            sa.Column("full_name", sa.String(length=150), nullable=False),
            sa.Column("phone", sa.String(length=40), nullable=False),
            sa.Column("region_city", sa.String(length=150), nullable=True),
            sa.Column("address", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
            sa.Column("total", sa.Numeric(12, 2), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )

    if "products" not in tables:
        op.create_table(
            "products",
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("slug", sa.String(length=255), nullable=True, unique=True),
            sa.Column("category", sa.String(length=64), nullable=False, server_default="electronic"),
            sa.Column("original_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("sale_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("in_stock", sa.Boolean(), nullable=True),
            sa.Column("rating", sa.Float(), nullable=True),
            sa.Column("image", sa.String(length=512), nullable=True),
            sa.Column("size_options", sa.JSON(), nullable=True),
            sa.Column("color_options", sa.JSON(), nullable=True),
            sa.Column("quantity_options", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )

    if "reviews" not in tables:
        op.create_table(
            "reviews",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("order_id", sa.String(length=36), nullable=False, unique=True),
            sa.Column("product_id", sa.String(length=64), nullable=True),
            sa.Column("rating", sa.Integer(), nullable=False),
            sa.Column("comment", sa.Text(), nullable=False),
            sa.Column("customer_name", sa.String(length=150), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_reviews_product_id", "reviews", ["product_id"])

    if "customer_signups" not in tables:
        op.create_table(
            "customer_signups",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("full_name", sa.String(length=150), nullable=False),
            sa.Column("phone", sa.String(length=40), nullable=False),
            sa.Column("email", sa.String(length=150), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )

    if "site_visits" not in tables:
        op.create_table(
            "site_visits",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("path", sa.String(length=512), nullable=False, server_default="/"),
            sa.Column("referrer", sa.String(length=512), nullable=True),
            sa.Column("user_agent", sa.String(length=512), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_site_visits_created_at", "site_visits", ["created_at"])


def downgrade() -> None:
    for table in ("site_visits", "customer_signups", "reviews", "products", "orders"):
        op.drop_table(table)
