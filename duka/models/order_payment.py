# duka/models/order_payment.py
from datetime import datetime
from duka.extensions import db


class OrderPayment(db.Model):
    __tablename__ = "order_payments"

    id = db.Column(db.String(36), primary_key=True)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), index=True, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    method = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(32), nullable=False, default="pending")
    reference = db.Column(db.String(255), nullable=True)
    tracking_id = db.Column(db.String(255), index=True, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<OrderPayment {self.id} order={self.order_id} {self.amount} TZS {self.status}>"
