# duka/models/order.py
from datetime import datetime
from duka.extensions import db


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.String(36), primary_key=True)

    # legacy flat columns (orders placed before line-item support)
    product_id = db.Column(db.String(64), nullable=True)
    product_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=True, default=1)

    order_items = db.Column(db.JSON, nullable=True)

    full_name = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(40), nullable=False)
    phone_normalized = db.Column(db.String(40), index=True, nullable=True)
    region_city = db.Column(db.String(150), nullable=True)
    address = db.Column(db.Text, nullable=True)
    selected_size = db.Column(db.String(40), nullable=True)
    selected_color = db.Column(db.String(40), nullable=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=True)
    shipping_fee = db.Column(db.Numeric(12, 2), nullable=True)
    shipping_label = db.Column(db.String(150), nullable=True)
    shipping_adjustment = db.Column(db.Numeric(12, 2), nullable=True, default=0)
    shipping_adjustment_note = db.Column(db.Text, nullable=True)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    payment_method = db.Column(db.String(32), nullable=True)
    payment_status = db.Column(db.String(32), nullable=True)
    amount_paid = db.Column(db.Numeric(12, 2), nullable=True, default=0)
    installment_enabled = db.Column(db.Boolean, nullable=True, default=False)
    deposit_amount = db.Column(db.Numeric(12, 2), nullable=True, default=0)
    installment_notes = db.Column(db.Text, nullable=True)
    payment_reference = db.Column(db.String(255), nullable=True)
    payment_tracking_id = db.Column(db.String(255), nullable=True)
    last_payment_at = db.Column(db.DateTime, nullable=True)

    status = db.Column(db.String(32), nullable=False, default="pending")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Order {self.id} - {self.full_name} - {self.status}>"
