# duka/models/analytics.py
from datetime import datetime
from duka.extensions import db


class CustomerSignup(db.Model):
    __tablename__ = "customer_signups"

    id = db.Column(db.String(36), primary_key=True)
    full_name = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(40), nullable=False)
    email = db.Column(db.String(150), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class SiteVisit(db.Model):
    __tablename__ = "site_visits"

    id = db.Column(db.String(36), primary_key=True)
    path = db.Column(db.String(512), nullable=False, default="/")
    referrer = db.Column(db.String(512), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime, index=True, default=datetime.utcnow)
