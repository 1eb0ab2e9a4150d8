# duka/models/product.py
from datetime import datetime
from duka.extensions import db


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), unique=True, nullable=True)
    category = db.Column(db.String(64), nullable=False, default="electronic")
    original_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    sale_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    in_stock = db.Column(db.Boolean, nullable=True, default=True)
    rating = db.Column(db.Float, nullable=True)
    image = db.Column(db.String(512), nullable=True)
    # JSON list or legacy text ("a,b,c" / "[...]")
    size_options = db.Column(db.JSON, nullable=True)
    color_options = db.Column(db.JSON, nullable=True)
    quantity_options = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Product {self.id} {self.name}>"
