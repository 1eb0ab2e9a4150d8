# duka/models/review.py
from datetime import datetime
from duka.extensions import db


class Review(db.Model):
    __tablename__ = "reviews"

    id = db.Column(db.String(36), primary_key=True)
    order_id = db.Column(db.String(36), unique=True, nullable=False)
    product_id = db.Column(db.String(64), index=True, nullable=True)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text, nullable=False)
    customer_name = db.Column(db.String(150), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
