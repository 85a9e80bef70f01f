# storefront/model/product.py
from sqlalchemy.sql import func

from ..extensions import db
from ..utils.money import to_string_money


class Product(db.Model):
    """Catalog row as seen by the checkout core: price and stock only."""

    __tablename__ = "product"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    __table_args__ = (
        db.CheckConstraint("price >= 0", name="ck_product_price_nonneg"),
    )

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "price": to_string_money(self.price),
            "stock_quantity": self.stock_quantity,
            "is_active": self.is_active,
        }
